"""
Unit tests for BuildPipeline.

Tests the library and test flows with in-process doubles for the resolver,
compiler and generator, plus one run over stand-in external tools.
"""

import asyncio

import pytest

from lfbuild.build.codegen import CodeGenerator, GenerationState, GenerationTask
from lfbuild.build.compiler import ClosureCompiler, CompileResult, ICompiler
from lfbuild.build.coordinator import SiblingPolicy
from lfbuild.build.dependency_resolver import ClosureDependencyResolver, IDependencyResolver
from lfbuild.build.flag_composer import BuildMode
from lfbuild.build.pipeline import TEST_ONLY_FLAGS, BuildPipeline
from lfbuild.config import BuildConfig, SchemaDescriptor
from lfbuild.errors import (
    CompilationFailure,
    DependencyResolutionFailure,
    GenerationFailure,
    ResourceExhaustionError,
)

LICENSE = "/**\n * @license\n * Copyright The Authors.\n */\n"


class RecordingCompiler(ICompiler):
    """Compiler double that records every call."""

    def __init__(self, events=None, output="compiled();\n", error=None):
        self.events = events if events is not None else []
        self.calls = []
        self.output = output
        self.error = error

    async def compile(self, inputs, flags, output_name, output_path=None):
        self.events.append('compile')
        self.calls.append({
            'inputs': list(inputs),
            'flags': dict(flags),
            'output_name': output_name,
            'output_path': output_path,
        })
        if self.error is not None:
            raise self.error
        if output_path is not None:
            output_path.write_text(self.output)
            return CompileResult(output_name, output_path, '', '', 0)
        return CompileResult(output_name, None, self.output, '', 0)


class RecordingResolver(IDependencyResolver):
    """Resolver double returning fixed closures."""

    def __init__(self, full_set=(), target_closure=(), events=None, error=None):
        self.full_set = list(full_set)
        self.target_closure = list(target_closure)
        self.events = events if events is not None else []
        self.error = error
        self.resolved = []

    def scan_full_set(self):
        self.events.append('scan')
        if self.error is not None:
            raise self.error
        return list(self.full_set)

    def resolve_target(self, target, extra_search_dir=None):
        self.events.append('resolve')
        self.resolved.append((target, extra_search_dir))
        if self.error is not None:
            raise self.error
        return list(self.target_closure)


class DelayedGenerator:
    """Generator double that writes its output after a delay."""

    def __init__(self, events, delay=0.05, fail_namespaces=()):
        self.events = events
        self.delay = delay
        self.fail_namespaces = set(fail_namespaces)
        self.output_dirs = []

    async def generate(self, schema, output_dir):
        self.output_dirs.append(output_dir)
        await asyncio.sleep(self.delay)
        if schema.namespace in self.fail_namespaces:
            self.events.append(f'fail:{schema.namespace}')
            raise GenerationFailure(schema.file, 1, 'boom')
        (output_dir / f'{schema.namespace}.js').write_text(f"goog.provide('{schema.namespace}');\n")
        self.events.append(f'generated:{schema.namespace}')
        return GenerationTask(schema, output_dir, state=GenerationState.SUCCEEDED, exit_code=0)


@pytest.fixture
def config(tmp_path):
    lib = tmp_path / 'lib'
    lib.mkdir()
    (lib / 'b.js').write_text('b();\n')
    (lib / 'a.js').write_text('a();\n')
    return BuildConfig(
        project_dir=tmp_path,
        compiler_path=tmp_path / 'compiler.jar',
        bundle_name='lf.js',
        flags_common={'compilation_level': 'ADVANCED'},
        flags_debug={'debug': None},
        flags_opt={'define': 'goog.DEBUG=false'},
        test_schemas=(
            SchemaDescriptor(file=tmp_path / 'hr.yaml', namespace='hr.db'),
            SchemaDescriptor(file=tmp_path / 'order.yaml', namespace='order.db'),
        ),
    )


@pytest.fixture
def workspace_parent(tmp_path):
    parent = tmp_path / 'tmp'
    parent.mkdir()
    return parent


class TestBuildLib:
    """Test suite for the library flow."""

    def test_inputs_are_closure_then_lib_glob(self, config, tmp_path):
        """Submitted inputs: scanned closure, then sorted library sources, duplicates kept."""
        closure = [tmp_path / 'closure' / 'base.js', tmp_path / 'lib' / 'a.js']
        resolver = RecordingResolver(full_set=closure)
        compiler = RecordingCompiler()
        pipeline = BuildPipeline(config, resolver=resolver, compiler=compiler)

        asyncio.run(pipeline.build_lib(BuildMode.COMPILED))

        assert len(compiler.calls) == 1
        assert compiler.calls[0]['inputs'] == [
            tmp_path / 'closure' / 'base.js',
            tmp_path / 'lib' / 'a.js',
            tmp_path / 'lib' / 'a.js',
            tmp_path / 'lib' / 'b.js',
        ]
        assert compiler.calls[0]['output_name'] == 'lf.js'

    @pytest.mark.parametrize('mode,expected', [
        (BuildMode.COMPILED, {'compilation_level': 'ADVANCED', 'define': 'goog.DEBUG=false'}),
        (BuildMode.DEBUG, {'compilation_level': 'ADVANCED', 'debug': None}),
    ])
    def test_mode_flags(self, config, mode, expected):
        compiler = RecordingCompiler()
        pipeline = BuildPipeline(config, resolver=RecordingResolver(), compiler=compiler)

        asyncio.run(pipeline.build_lib(mode))

        assert compiler.calls[0]['flags'] == expected

    def test_bundle_written_without_licenses(self, config, tmp_path):
        compiler = RecordingCompiler(output=LICENSE + "a();\n" + LICENSE + "b();\n")
        pipeline = BuildPipeline(config, resolver=RecordingResolver(), compiler=compiler)

        bundle = asyncio.run(pipeline.build_lib(BuildMode.COMPILED))

        assert bundle == tmp_path / 'dist' / 'lf.js'
        assert bundle.read_text() == "a();\nb();\n"

    def test_deterministic_submission(self, config, tmp_path):
        """Two builds with unchanged inputs submit identical inputs and flags."""
        compiler = RecordingCompiler()
        resolver = RecordingResolver(full_set=[tmp_path / 'closure' / 'base.js'])
        pipeline = BuildPipeline(config, resolver=resolver, compiler=compiler)

        asyncio.run(pipeline.build_lib(BuildMode.COMPILED))
        asyncio.run(pipeline.build_lib(BuildMode.COMPILED))

        assert compiler.calls[0] == compiler.calls[1]

    def test_resolution_failure_skips_compile(self, config):
        compiler = RecordingCompiler()
        resolver = RecordingResolver(error=DependencyResolutionFailure('lib', 'broken'))
        pipeline = BuildPipeline(config, resolver=resolver, compiler=compiler)

        with pytest.raises(DependencyResolutionFailure):
            asyncio.run(pipeline.build_lib(BuildMode.COMPILED))

        assert compiler.calls == []

    def test_compilation_failure_writes_nothing(self, config, tmp_path):
        compiler = RecordingCompiler(error=CompilationFailure('lf.js', 1, 'bad'))
        pipeline = BuildPipeline(config, resolver=RecordingResolver(), compiler=compiler)

        with pytest.raises(CompilationFailure):
            asyncio.run(pipeline.build_lib(BuildMode.COMPILED))

        assert not (tmp_path / 'dist' / 'lf.js').exists()


class TestBuildTest:
    """Test suite for the test flow."""

    def test_steps_run_in_order(self, config, workspace_parent, tmp_path):
        """Resolution starts only after every generator has written its output."""
        events = []
        target_file = tmp_path / 'testing' / 'hr_test.js'
        resolver = RecordingResolver(target_closure=[target_file], events=events)
        compiler = RecordingCompiler(events=events)
        generator = DelayedGenerator(events)
        pipeline = BuildPipeline(
            config,
            resolver=resolver,
            compiler=compiler,
            generator=generator,
            workspace_parent=workspace_parent,
        )

        asyncio.run(pipeline.build_test('lf.testing.hr'))

        assert sorted(events[:2]) == ['generated:hr.db', 'generated:order.db']
        assert events[2:] == ['resolve', 'compile']

    def test_resolver_searches_workspace(self, config, workspace_parent):
        events = []
        resolver = RecordingResolver(events=events)
        generator = DelayedGenerator(events, delay=0)
        pipeline = BuildPipeline(
            config,
            resolver=resolver,
            compiler=RecordingCompiler(),
            generator=generator,
            workspace_parent=workspace_parent,
        )

        asyncio.run(pipeline.build_test('lf.testing.hr'))

        target, search_dir = resolver.resolved[0]
        assert target == 'lf.testing.hr'
        assert search_dir == generator.output_dirs[0]
        assert search_dir.parent == workspace_parent

    def test_compiles_into_workspace_with_test_flags(self, config, workspace_parent, tmp_path):
        target_file = tmp_path / 'testing' / 'hr_test.js'
        compiler = RecordingCompiler()
        generator = DelayedGenerator([], delay=0)
        pipeline = BuildPipeline(
            config,
            resolver=RecordingResolver(target_closure=[target_file]),
            compiler=compiler,
            generator=generator,
            workspace_parent=workspace_parent,
        )

        asyncio.run(pipeline.build_test('lf.testing.hr'))

        call = compiler.calls[0]
        assert call['inputs'] == [target_file]
        assert call['flags'] == {
            'compilation_level': 'ADVANCED',
            'define': 'goog.DEBUG=false',
            **TEST_ONLY_FLAGS,
        }
        assert call['output_path'].parent == generator.output_dirs[0]
        assert call['output_name'] == call['output_path'].name

    def test_workspace_released_on_success(self, config, workspace_parent):
        pipeline = BuildPipeline(
            config,
            resolver=RecordingResolver(),
            compiler=RecordingCompiler(),
            generator=DelayedGenerator([], delay=0),
            workspace_parent=workspace_parent,
        )

        asyncio.run(pipeline.build_test('lf.testing.hr'))

        assert list(workspace_parent.iterdir()) == []

    def test_keep_temp(self, config, workspace_parent):
        generator = DelayedGenerator([], delay=0)
        pipeline = BuildPipeline(
            config,
            resolver=RecordingResolver(),
            compiler=RecordingCompiler(),
            generator=generator,
            keep_temp=True,
            workspace_parent=workspace_parent,
        )

        asyncio.run(pipeline.build_test('lf.testing.hr'))

        workspace = generator.output_dirs[0]
        assert workspace.is_dir()
        assert (workspace / 'hr.db.js').is_file()

    def test_generation_failure_stops_flow(self, config, workspace_parent):
        """A failed schema means no resolution, no compilation, workspace released."""
        events = []
        resolver = RecordingResolver(events=events)
        compiler = RecordingCompiler(events=events)
        pipeline = BuildPipeline(
            config,
            resolver=resolver,
            compiler=compiler,
            generator=DelayedGenerator(events, fail_namespaces={'order.db'}),
            workspace_parent=workspace_parent,
        )

        with pytest.raises(GenerationFailure):
            asyncio.run(pipeline.build_test('lf.testing.hr'))

        assert 'resolve' not in events
        assert compiler.calls == []
        assert list(workspace_parent.iterdir()) == []

    def test_resolution_failure_skips_compile(self, config, workspace_parent):
        """Slow generators settle, the resolver fails, the compiler is never called."""
        events = []
        compiler = RecordingCompiler(events=events)
        pipeline = BuildPipeline(
            config,
            resolver=RecordingResolver(
                events=events, error=DependencyResolutionFailure('x', 'missing')
            ),
            compiler=compiler,
            generator=DelayedGenerator(events, delay=0.05),
            workspace_parent=workspace_parent,
        )

        with pytest.raises(DependencyResolutionFailure):
            asyncio.run(pipeline.build_test('x'))

        assert compiler.calls == []
        assert events[-1] == 'resolve'
        assert sorted(events[:2]) == ['generated:hr.db', 'generated:order.db']
        assert list(workspace_parent.iterdir()) == []

    def test_workspace_allocation_failure_runs_nothing(self, config, tmp_path):
        """An unusable workspace parent fails the build before any step runs."""
        events = []
        compiler = RecordingCompiler(events=events)
        generator = DelayedGenerator(events, delay=0)
        pipeline = BuildPipeline(
            config,
            resolver=RecordingResolver(events=events),
            compiler=compiler,
            generator=generator,
            workspace_parent=tmp_path / 'missing' / 'dir',
        )

        with pytest.raises(ResourceExhaustionError):
            asyncio.run(pipeline.build_test('lf.testing.hr'))

        assert generator.output_dirs == []
        assert events == []
        assert compiler.calls == []
        assert not (tmp_path / 'missing').exists()

    def test_compilation_failure_releases_workspace(self, config, workspace_parent):
        pipeline = BuildPipeline(
            config,
            resolver=RecordingResolver(),
            compiler=RecordingCompiler(error=CompilationFailure('out.js', 1, 'bad')),
            generator=DelayedGenerator([], delay=0),
            workspace_parent=workspace_parent,
        )

        with pytest.raises(CompilationFailure):
            asyncio.run(pipeline.build_test('lf.testing.hr'))

        assert list(workspace_parent.iterdir()) == []

    def test_no_schemas_skips_generation(self, tmp_path, workspace_parent):
        """Without schemas no generator is needed."""
        config = BuildConfig(project_dir=tmp_path, compiler_path=tmp_path / 'compiler.jar')
        compiler = RecordingCompiler()
        pipeline = BuildPipeline(
            config,
            resolver=RecordingResolver(),
            compiler=compiler,
            workspace_parent=workspace_parent,
        )

        asyncio.run(pipeline.build_test('lf.testing.hr'))

        assert len(compiler.calls) == 1


class TestEndToEnd:
    """Runs the test flow over the real resolver and stand-in external tools."""

    def test_test_flow(self, tmp_path, fake_generator, fake_java, fake_compiler_script):
        testing = tmp_path / 'testing'
        testing.mkdir()
        (testing / 'hr_schema.yaml').write_text('')
        (testing / 'hr_test.js').write_text(
            "goog.provide('lf.testing.hr');\ngoog.require('hr.db');\n"
        )
        workspace_parent = tmp_path / 'tmp'
        workspace_parent.mkdir()

        config = BuildConfig(
            project_dir=tmp_path,
            compiler_path=fake_compiler_script,
            java=fake_java,
            source_roots=(testing,),
            test_schemas=(SchemaDescriptor(file=testing / 'hr_schema.yaml', namespace='hr.db'),),
        )
        compiler_calls = []

        class SpyCompiler(ICompiler):
            def __init__(self, inner):
                self.inner = inner

            async def compile(self, inputs, flags, output_name, output_path=None):
                result = await self.inner.compile(inputs, flags, output_name, output_path)
                compiler_calls.append((list(inputs), output_path.read_text()))
                return result

        pipeline = BuildPipeline(
            config,
            resolver=ClosureDependencyResolver.from_config(config),
            compiler=SpyCompiler(ClosureCompiler.from_config(config)),
            generator=CodeGenerator(fake_generator),
            policy=SiblingPolicy.CANCEL,
            workspace_parent=workspace_parent,
        )

        asyncio.run(pipeline.build_test('lf.testing.hr'))

        inputs, output = compiler_calls[0]
        assert [path.name for path in inputs] == ['hr.db.js', 'hr_test.js']
        assert "goog.provide('hr.db');" in output
        assert '--export_local_property_definitions' in output
        assert list(workspace_parent.iterdir()) == []
