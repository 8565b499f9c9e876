#!/usr/bin/env python3
"""
Tests for the exercise verifier.

The toolchain is faked by patching subprocess.run, except for the smoke test
at the bottom which needs a real rustc on PATH.
"""

import io
import logging
import shutil
import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest
from rich.console import Console

from journey.exercises import (
    Exercise,
    ExerciseFileError,
    Mode,
    ToolchainError,
    Verifier,
)
from journey.exercises.verifier import scratch_binary


def make_verifier(base_path):
    console = Console(file=io.StringIO(), width=120)
    return Verifier(base_path=base_path, console=console)


def output_of(verifier):
    return verifier.console.file.getvalue()


def completed(cmd, returncode=0, stdout='', stderr=''):
    return subprocess.CompletedProcess(cmd, returncode, stdout, stderr)


class FakeToolchain:
    """Stands in for subprocess.run: compiles by touching the -o path"""

    def __init__(self, compile_rc=0, test_rc=0, compile_stderr='', test_stdout=''):
        self.compile_rc = compile_rc
        self.test_rc = test_rc
        self.compile_stderr = compile_stderr
        self.test_stdout = test_stdout
        self.calls = []
        self.binaries = []

    def __call__(self, cmd, **kwargs):
        self.calls.append(cmd)
        if '-o' in cmd:
            binary = Path(cmd[cmd.index('-o') + 1])
            self.binaries.append(binary)
            if self.compile_rc == 0:
                binary.write_text('binary')
            return completed(cmd, self.compile_rc, stderr=self.compile_stderr)
        return completed(cmd, self.test_rc, stdout=self.test_stdout)


@pytest.fixture
def course(tmp_path):
    source = tmp_path / 'a.rs'
    source.write_text('fn main() {}\n')
    return tmp_path


class TestCompileMode:
    """Tests for compile-mode verification"""

    def test_compile_success(self, course):
        """Test exit code 0 means passed"""
        verifier = make_verifier(course)
        exercise = Exercise(name='e1', path=Path('a.rs'), mode=Mode.COMPILE)
        toolchain = FakeToolchain()

        with patch('journey.exercises.verifier.subprocess.run', side_effect=toolchain):
            assert verifier.verify(exercise) == True

        cmd = toolchain.calls[0]
        assert cmd[0] == 'rustc'
        assert '--edition=2021' in cmd
        assert str(course / 'a.rs') in cmd
        assert '--test' not in cmd
        assert 'Successfully compiled e1' in output_of(verifier)

    def test_compile_failure_shows_diagnostics(self, course):
        """Test a compiler error is a failed verification, not an exception"""
        verifier = make_verifier(course)
        exercise = Exercise(name='e1', path=Path('a.rs'), mode=Mode.COMPILE)
        toolchain = FakeToolchain(compile_rc=1, compile_stderr='error[E0425]: cannot find value `x`')

        with patch('journey.exercises.verifier.subprocess.run', side_effect=toolchain):
            assert verifier.verify(exercise) == False

        output = output_of(verifier)
        assert 'Failed to compile e1' in output
        assert 'error[E0425]: cannot find value `x`' in output

    def test_compile_artifact_discarded(self, course):
        """Test no compiled binary is left behind"""
        verifier = make_verifier(course)
        exercise = Exercise(name='e1', path=Path('a.rs'), mode=Mode.COMPILE)
        toolchain = FakeToolchain()

        with patch('journey.exercises.verifier.subprocess.run', side_effect=toolchain):
            verifier.verify(exercise)

        assert len(toolchain.binaries) == 1
        assert not toolchain.binaries[0].exists()

    def test_exercise_not_mutated(self, course):
        """Test the verifier never marks exercises complete itself"""
        verifier = make_verifier(course)
        exercise = Exercise(name='e1', path=Path('a.rs'), mode=Mode.COMPILE)

        with patch('journey.exercises.verifier.subprocess.run', side_effect=FakeToolchain()):
            verifier.verify(exercise)

        assert exercise.completed == False

    def test_custom_compiler_and_edition(self, course):
        """Test the compiler binary and edition are configurable"""
        verifier = Verifier(base_path=course, compiler='/opt/rust/bin/rustc', edition='2018',
                            console=Console(file=io.StringIO()))
        exercise = Exercise(name='e1', path=Path('a.rs'), mode=Mode.COMPILE)
        toolchain = FakeToolchain()

        with patch('journey.exercises.verifier.subprocess.run', side_effect=toolchain):
            verifier.check(exercise)

        assert toolchain.calls[0][:2] == ['/opt/rust/bin/rustc', '--edition=2018']

    def test_missing_file(self, tmp_path):
        """Test a missing exercise file is fatal"""
        verifier = make_verifier(tmp_path)
        exercise = Exercise(name='e1', path=Path('nope.rs'), mode=Mode.COMPILE)

        with pytest.raises(ExerciseFileError) as exc:
            verifier.verify(exercise)
        assert 'nope.rs' in str(exc.value)

    def test_compiler_not_found(self, course):
        """Test a toolchain that can't be spawned is an environment error"""
        verifier = make_verifier(course)
        exercise = Exercise(name='e1', path=Path('a.rs'), mode=Mode.COMPILE)

        with patch('journey.exercises.verifier.subprocess.run',
                   side_effect=FileNotFoundError('rustc')):
            with pytest.raises(ToolchainError) as exc:
                verifier.verify(exercise)
        assert 'rustc' in str(exc.value)

    def test_base_path_override(self, tmp_path, course):
        """Test an explicit base path wins over the configured one"""
        verifier = make_verifier(tmp_path / 'elsewhere')
        exercise = Exercise(name='e1', path=Path('a.rs'), mode=Mode.COMPILE)

        with patch('journey.exercises.verifier.subprocess.run', side_effect=FakeToolchain()):
            assert verifier.verify(exercise, base_path=course) == True


class TestTestMode:
    """Tests for test-mode verification"""

    def test_tests_pass(self, course):
        """Test a compiled test binary that exits 0 passes"""
        verifier = make_verifier(course)
        exercise = Exercise(name='t1', path=Path('a.rs'), mode=Mode.TEST)
        toolchain = FakeToolchain()

        with patch('journey.exercises.verifier.subprocess.run', side_effect=toolchain):
            assert verifier.verify(exercise) == True

        compile_cmd, run_cmd = toolchain.calls
        assert '--test' in compile_cmd
        assert run_cmd == [str(toolchain.binaries[0])]
        assert 'Tests passed for t1' in output_of(verifier)

    def test_panicking_test_fails_and_cleans_up(self, course):
        """Test a failing test binary fails verification and is deleted"""
        verifier = make_verifier(course)
        exercise = Exercise(name='t1', path=Path('a.rs'), mode=Mode.TEST)
        toolchain = FakeToolchain(test_rc=101, test_stdout="thread 'tests::it_works' panicked")

        with patch('journey.exercises.verifier.subprocess.run', side_effect=toolchain):
            assert verifier.verify(exercise) == False

        binary = toolchain.binaries[0]
        assert not binary.exists()
        output = output_of(verifier)
        assert 'Tests failed for t1' in output
        assert 'panicked' in output

    def test_compile_failure_skips_run(self, course):
        """Test a test file that doesn't build never runs"""
        verifier = make_verifier(course)
        exercise = Exercise(name='t1', path=Path('a.rs'), mode=Mode.TEST)
        toolchain = FakeToolchain(compile_rc=1, compile_stderr='error: expected `;`')

        with patch('journey.exercises.verifier.subprocess.run', side_effect=toolchain):
            outcome = verifier.check(exercise)

        assert outcome.passed == False
        assert outcome.stage == 'compile'
        assert 'expected' in outcome.diagnostic_text
        assert len(toolchain.calls) == 1

    def test_binary_removed_when_run_fails_to_start(self, course):
        """Test cleanup still happens when the test binary can't be executed"""
        verifier = make_verifier(course)
        exercise = Exercise(name='t1', path=Path('a.rs'), mode=Mode.TEST)
        toolchain = FakeToolchain()

        def run(cmd, **kwargs):
            if '-o' not in cmd:
                raise PermissionError('not executable')
            return toolchain(cmd, **kwargs)

        with patch('journey.exercises.verifier.subprocess.run', side_effect=run):
            with pytest.raises(ToolchainError):
                verifier.verify(exercise)

        assert not toolchain.binaries[0].exists()


class TestTimeout:
    """Tests for toolchain runs that never finish"""

    def test_hanging_test_binary(self, course):
        """Test a test binary that runs too long fails and is still removed"""
        verifier = Verifier(base_path=course, console=Console(file=io.StringIO(), width=120),
                            timeout=5)
        exercise = Exercise(name='t1', path=Path('a.rs'), mode=Mode.TEST)
        toolchain = FakeToolchain()
        timeouts = []

        def run(cmd, **kwargs):
            timeouts.append(kwargs.get('timeout'))
            if '-o' not in cmd:
                raise subprocess.TimeoutExpired(cmd, kwargs['timeout'])
            return toolchain(cmd, **kwargs)

        with patch('journey.exercises.verifier.subprocess.run', side_effect=run):
            outcome = verifier.check(exercise)

        assert outcome.passed == False
        assert outcome.stage == 'test'
        assert 'Timed out after 5 seconds' in outcome.diagnostic_text
        assert timeouts == [5, 5]
        assert not toolchain.binaries[0].exists()

    def test_no_timeout_by_default(self, course):
        """Test runs wait for the toolchain unless a timeout is configured"""
        verifier = make_verifier(course)
        exercise = Exercise(name='e1', path=Path('a.rs'), mode=Mode.COMPILE)

        with patch('journey.exercises.verifier.subprocess.run', side_effect=FakeToolchain()) as run:
            verifier.check(exercise)

        assert run.call_args.kwargs['timeout'] is None


class TestScratchBinary:
    """Tests for temporary binary naming and cleanup"""

    def test_unique_names(self):
        """Test two scratch paths for the same exercise never collide"""
        with scratch_binary('e1') as first, scratch_binary('e1') as second:
            assert first != second
            assert 'e1' in first.name

    def test_unsafe_characters_replaced(self):
        """Test exercise names are made safe for file names"""
        with scratch_binary('../weird name') as path:
            assert '/' not in path.name
            assert ' ' not in path.name

    def test_removal_failure_is_logged(self, caplog):
        """Test a binary that can't be deleted is logged, not raised"""
        with patch('journey.exercises.verifier.Path.unlink', side_effect=PermissionError('busy')):
            with caplog.at_level(logging.WARNING, logger='journey.exercises.verifier'):
                with scratch_binary('e1'):
                    pass

        assert 'Could not remove temporary binary' in caplog.text


@pytest.mark.skipif(shutil.which('rustc') is None, reason='rustc not installed')
class TestRealToolchain:
    """Smoke tests against a real rustc"""

    def test_fix_compile_error(self, tmp_path):
        """Test a broken file fails and the fixed file passes"""
        source = tmp_path / 'a.rs'
        source.write_text('fn main() { let x: i32 = "nope"; }\n')
        verifier = make_verifier(tmp_path)
        exercise = Exercise(name='e1', path=Path('a.rs'), mode=Mode.COMPILE)

        assert verifier.verify(exercise) == False

        source.write_text('fn main() { let _x: i32 = 1; }\n')
        assert verifier.verify(exercise) == True

    def test_panicking_test(self, tmp_path):
        """Test a panicking embedded test fails verification"""
        source = tmp_path / 't.rs'
        source.write_text(
            '#[cfg(test)]\nmod tests {\n    #[test]\n    fn fails() { assert_eq!(1, 2); }\n}\n'
        )
        verifier = make_verifier(tmp_path)
        exercise = Exercise(name='t1', path=Path('t.rs'), mode=Mode.TEST)

        assert verifier.verify(exercise) == False
        assert list(tmp_path.iterdir()) == [source]
