"""Tests for capture session lifecycle, outcomes and idempotent cleanup."""
from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from capture import CaptureSession, RecordingCallbacks, SamplerState, SessionState, StreamEncoder
from capture.exceptions import CaptureStateError
from tests.fakes import FAKE_WEBM, FakeSurface


class HookSurface(FakeSurface):
    """FakeSurface that runs ``hook`` before the given snapshot call."""

    def __init__(self, hook, on_call: int, **kwargs):
        super().__init__(**kwargs)
        self.hook = hook
        self.on_call = on_call

    def render_snapshot(self, width, height):
        if self.calls + 1 == self.on_call:
            self.hook()
        return super().render_snapshot(width, height)


# ---------- Successful recording ----------

class TestSuccessfulRecording:
    def test_outcome(self, session_factory, fake_ffmpeg):
        session = session_factory(FakeSurface())
        outcome = session.run()
        assert outcome.ok
        assert outcome.artifact == FAKE_WEBM
        assert outcome.filename == "word-garden-1700000000000.webm"
        assert outcome.frame_count == 8
        assert outcome.codec == "libvpx-vp9"
        assert session.state is SessionState.DONE
        assert session.sampler.state is SamplerState.DONE

    def test_frames_reach_encoder(self, session_factory, fake_ffmpeg):
        session_factory(FakeSurface()).run()
        assert len(fake_ffmpeg.last.stdin.data) == 8 * 32 * 24 * 4

    def test_background_flattened(self, session_factory, fake_ffmpeg):
        session_factory(FakeSurface(color=(0, 0, 0, 0))).run()
        assert set(fake_ffmpeg.last.stdin.data) == {255}

    def test_accumulated_chunks(self, session_factory, fake_ffmpeg):
        session = session_factory(FakeSurface())
        session.run()
        assert b"".join(session.accumulated_chunks) == FAKE_WEBM

    def test_callbacks_after_cleanup(self, session_factory, fake_ffmpeg):
        events = []
        session = None

        def on_finish(artifact):
            events.append(("finish", len(artifact), session.cleanup_count))

        callbacks = RecordingCallbacks(on_start=lambda: events.append(("start",)), on_finish=on_finish)
        session = session_factory(FakeSurface(), callbacks=callbacks)
        session.run()
        assert events == [("start",), ("finish", len(FAKE_WEBM), 1)]

    def test_cleanup_runs_once(self, session_factory, fake_ffmpeg):
        session = session_factory(FakeSurface())
        session.run()
        assert session.cleanup_count == 1
        assert session.cleanup() is False
        assert session.compositor.released
        assert session.encoder.process is None

    def test_callback_errors_do_not_break_outcome(self, session_factory, fake_ffmpeg):
        callbacks = RecordingCallbacks(on_finish=MagicMock(side_effect=RuntimeError("boom")))
        outcome = session_factory(FakeSurface(), callbacks=callbacks).run()
        assert outcome.ok

    def test_run_twice(self, session_factory, fake_ffmpeg):
        session = session_factory(FakeSurface())
        session.run()
        with pytest.raises(CaptureStateError):
            session.run()


# ---------- Failures ----------

class TestFailures:
    def test_capture_fault(self, session_factory, fake_ffmpeg):
        on_error = MagicMock()
        on_finish = MagicMock()
        session = session_factory(
            FakeSurface(fail_on={3}),
            callbacks=RecordingCallbacks(on_finish=on_finish, on_error=on_error),
        )
        outcome = session.run()
        assert not outcome.ok
        assert outcome.artifact is None
        assert outcome.error_kind == "encoding_fault"
        assert outcome.frame_count == 2
        assert session.state is SessionState.FAILED
        assert session.sampler.state is SamplerState.FAILED
        on_error.assert_called_once_with("encoding_fault")
        on_finish.assert_not_called()

    def test_fault_cleans_up_exactly_once(self, session_factory, fake_ffmpeg):
        session = session_factory(FakeSurface(fail_on={3}))
        session.run()
        popen = fake_ffmpeg.last
        assert session.cleanup_count == 1
        assert popen.terminate_calls == 1
        assert session.cleanup() is False
        assert popen.terminate_calls == 1

    def test_unsupported_allocates_nothing(self, session_factory, fake_ffmpeg):
        on_error = MagicMock()
        session = session_factory(
            FakeSurface(),
            callbacks=RecordingCallbacks(on_error=on_error),
            support_check=lambda: False,
        )
        outcome = session.run()
        assert outcome.error_kind == "capture_unsupported"
        assert session.encoder is None and session.compositor is None
        assert fake_ffmpeg.popens == []
        on_error.assert_called_once_with("capture_unsupported")

    def test_surface_without_snapshot(self, session_factory, fake_ffmpeg):
        outcome = session_factory(object()).run()
        assert outcome.error_kind == "capture_unsupported"

    def test_artifact_too_small(self, session_factory, fake_ffmpeg):
        fake_ffmpeg.output = b"\x1a\x45\xdf\xa3"
        session = session_factory(FakeSurface())
        outcome = session.run()
        assert outcome.error_kind == "encoding_too_small"
        assert outcome.artifact is None
        assert session.state is SessionState.FAILED

    def test_encoder_crash_at_finalize(self, session_factory, fake_ffmpeg):
        fake_ffmpeg.returncode = 1
        outcome = session_factory(FakeSurface()).run()
        assert outcome.error_kind == "encoding_fault"

    def test_unexpected_error_becomes_fault(self, session_factory, fake_ffmpeg, monkeypatch):
        monkeypatch.setattr(
            "capture.compositor.Compositor.draw",
            MagicMock(side_effect=TypeError("bad snapshot")),
        )
        session = session_factory(FakeSurface())
        outcome = session.run()
        assert outcome.error_kind == "encoding_fault"
        assert session.cleanup_count == 1


# ---------- Abort ----------

class TestAbort:
    def test_abort_mid_recording(self, session_factory, fake_ffmpeg):
        holder = {}
        surface = HookSurface(lambda: holder["session"].abort(), on_call=3)
        session = session_factory(surface)
        holder["session"] = session
        outcome = session.run()
        assert outcome.error_kind == "capture_aborted"
        assert session.state is SessionState.FAILED
        assert session.cleanup_count == 1

    def test_abort_before_run(self, session_factory, fake_ffmpeg):
        session = session_factory(FakeSurface())
        session.abort()
        assert session.state is SessionState.FAILED
        assert session.cleanup_count == 1
        with pytest.raises(CaptureStateError):
            session.run()

    def test_abort_while_starting_spawns_nothing(self, session_factory, fake_ffmpeg):
        holder = {}

        def _support():
            holder["session"].abort()
            return True

        session = session_factory(FakeSurface(), support_check=_support)
        holder["session"] = session
        outcome = session.run()
        assert outcome.error_kind == "capture_aborted"
        assert fake_ffmpeg.popens == []
        assert session.encoder is None
        assert session.cleanup_count == 1

    def test_abort_on_start_releases_encoder(self, session_factory, fake_ffmpeg):
        holder = {}
        callbacks = RecordingCallbacks(on_start=lambda: holder["session"].abort())
        session = session_factory(FakeSurface(), callbacks=callbacks)
        holder["session"] = session
        outcome = session.run()
        popen = fake_ffmpeg.last
        assert outcome.error_kind == "capture_aborted"
        assert popen.terminate_calls == 1
        assert session.encoder.process is None
        assert not session.encoder.is_alive()

    def test_abort_during_finalize(self, session_factory, fake_ffmpeg):
        holder = {}

        class AbortingEncoder(StreamEncoder):
            def finalize(self):
                holder["session"].abort()
                return super().finalize()

        on_finish = MagicMock()
        session = session_factory(
            FakeSurface(),
            callbacks=RecordingCallbacks(on_finish=on_finish),
            encoder_factory=AbortingEncoder,
        )
        holder["session"] = session
        outcome = session.run()
        assert not outcome.ok
        assert outcome.artifact is None
        assert outcome.error_kind == "capture_aborted"
        assert session.state is SessionState.FAILED
        assert fake_ffmpeg.last.terminate_calls == 1
        on_finish.assert_not_called()

    def test_abort_after_finalize_discards_artifact(self, session_factory, fake_ffmpeg):
        holder = {}

        class LateAbortEncoder(StreamEncoder):
            def finalize(self):
                artifact = super().finalize()
                holder["session"].abort()
                return artifact

        session = session_factory(FakeSurface(), encoder_factory=LateAbortEncoder)
        holder["session"] = session
        outcome = session.run()
        assert outcome.error_kind == "capture_aborted"
        assert outcome.artifact is None

    def test_cleanup_releases_late_resources(self, session_factory, fake_ffmpeg):
        session = session_factory(FakeSurface())
        assert session.cleanup() is True
        session._allocate()
        session.encoder.start()
        popen = fake_ffmpeg.last
        assert session.cleanup() is False
        assert popen.terminate_calls == 1
        assert session.compositor.released
        assert session.cleanup_count == 1
