"""Shared fixtures for build tests: stand-ins for the external tools."""

import sys
import textwrap

import pytest

FAKE_GENERATOR = textwrap.dedent('''
    import sys
    import time
    from pathlib import Path

    args = dict(arg[2:].split('=', 1) for arg in sys.argv[1:])
    schema = Path(args['schema'])
    if not schema.is_file():
        sys.stderr.write(f"schema not found: {schema}\\n")
        sys.exit(1)

    for line in schema.read_text().splitlines():
        key, _, value = line.partition(':')
        if key == 'sleep':
            time.sleep(float(value))
        elif key == 'exit':
            sys.stderr.write("generator failed\\n")
            sys.exit(int(value))

    output = Path(args['outputdir']) / (args['namespace'] + '.js')
    output.write_text(f"goog.provide('{args['namespace']}');\\n")
''')

FAKE_COMPILER = textwrap.dedent('''
    import sys
    from pathlib import Path

    argv = sys.argv[1:]
    if len(argv) == 1 and argv[0].startswith('--flagfile='):
        lines = Path(argv[0].split('=', 1)[1]).read_text().splitlines()
        argv = [line.strip('"') for line in lines]

    inputs = [arg.split('=', 1)[1] for arg in argv if arg.startswith('--js=')]
    outputs = [arg.split('=', 1)[1] for arg in argv if arg.startswith('--js_output_file=')]
    flags = [arg for arg in argv if not arg.startswith(('--js=', '--js_output_file='))]

    if '--fail' in flags:
        sys.stderr.write("ERROR - type mismatch\\n")
        sys.exit(2)

    body = "".join(Path(path).read_text() for path in inputs)
    body += "// flags: " + " ".join(flags) + "\\n"
    if outputs:
        Path(outputs[0]).write_text(body)
    else:
        sys.stdout.write(body)
''')


@pytest.fixture
def fake_generator(tmp_path):
    """Command prefix running a stand-in code generator.

    Schema files drive it: a 'sleep:N' line delays it, an 'exit:N' line makes
    it fail, a missing schema file exits 1. Otherwise it writes
    <outputdir>/<namespace>.js providing the namespace.
    """
    script = tmp_path / 'fake_generator.py'
    script.write_text(FAKE_GENERATOR)
    return [sys.executable, str(script)]


@pytest.fixture
def fake_compiler_script(tmp_path):
    """Stand-in compiler that concatenates its --js inputs.

    Output goes to --js_output_file when given, stdout otherwise. A --fail
    flag makes it exit 2.
    """
    script = tmp_path / 'fake_compiler.py'
    script.write_text(FAKE_COMPILER)
    return script


@pytest.fixture
def fake_java(tmp_path):
    """Stand-in for the java launcher: runs `-jar <script>` with Python."""
    if sys.platform == 'win32':
        pytest.skip('shell launcher stand-in needs a POSIX shell')
    launcher = tmp_path / 'java'
    launcher.write_text(f'#!/bin/sh\nshift\nexec "{sys.executable}" "$@"\n')
    launcher.chmod(0o755)
    return str(launcher)
