"""Unit tests for the game process client."""

import signal
import subprocess
from unittest.mock import MagicMock, call, patch

import pytest

from game_relay.clients.process import GameProcess
from game_relay.errors import ProcessNotFound, ProcessStartError


class TestCommands:
    def test_display_command(self):
        assert GameProcess().display_command() == ["Xvfb", ":1", "-screen", "0", "320x240x24"]

    def test_game_command_first_level(self):
        command = GameProcess().game_command("1")

        assert command[0] == "/usr/games/chocolate-doom"
        assert "-warp" not in command
        assert command[-2:] == ["-episode", "1"]

    def test_game_command_warps_to_level(self):
        assert GameProcess().game_command("3")[-3:] == ["-warp", "1", "3"]


class TestLifecycle:
    @patch("game_relay.clients.process.subprocess.Popen")
    def test_start_returns_game_pid(self, mock_popen):
        display, game = MagicMock(pid=10), MagicMock(pid=11)
        mock_popen.side_effect = [display, game]
        sleeps = []

        pid = GameProcess(sleep=sleeps.append).start("1")

        assert pid == 11
        assert sleeps == [1.0]
        assert mock_popen.call_args_list[1].kwargs["env"]["DISPLAY"] == ":1"

    @patch("game_relay.clients.process.os.kill")
    def test_pause_and_resume_signals(self, mock_kill):
        process = GameProcess()

        process.pause(11)
        process.resume(11)

        assert mock_kill.call_args_list == [call(11, signal.SIGSTOP), call(11, signal.SIGCONT)]

    @patch("game_relay.clients.process.os.kill", side_effect=ProcessLookupError)
    def test_pause_missing_process_is_ignored(self, mock_kill):
        GameProcess().pause(11)

    @patch("game_relay.clients.process.os.kill", side_effect=ProcessLookupError)
    def test_resume_missing_process_raises(self, mock_kill):
        with pytest.raises(ProcessNotFound, match="11"):
            GameProcess().resume(11)

    @patch("game_relay.clients.process.os.kill")
    @patch("game_relay.clients.process.subprocess.Popen")
    def test_terminate_reaps_children(self, mock_popen, mock_kill):
        display, game = MagicMock(pid=10), MagicMock(pid=11)
        mock_popen.side_effect = [display, game]
        process = GameProcess(sleep=lambda s: None)
        process.start("1")

        process.terminate(11)

        assert mock_kill.call_args_list == [call(11, signal.SIGTERM), call(11, signal.SIGCONT)]
        game.wait.assert_called_once()
        display.terminate.assert_called_once()
        display.wait.assert_called_once()

    @patch("game_relay.clients.process.os.kill", side_effect=ProcessLookupError)
    def test_terminate_missing_process_is_ignored(self, mock_kill):
        GameProcess().terminate(11)

    @patch("game_relay.clients.process.os.kill")
    @patch("game_relay.clients.process.subprocess.Popen")
    def test_stuck_process_is_killed(self, mock_popen, mock_kill):
        display, game = MagicMock(pid=10), MagicMock(pid=11)
        game.wait.side_effect = [subprocess.TimeoutExpired("doom", 3), 0]
        mock_popen.side_effect = [display, game]
        process = GameProcess(sleep=lambda s: None)
        process.start("1")

        process.terminate(11)

        game.kill.assert_called_once()

    @patch("game_relay.clients.process.subprocess.Popen")
    def test_failed_game_launch_stops_display_server(self, mock_popen):
        display = MagicMock(pid=10)
        mock_popen.side_effect = [display, FileNotFoundError("chocolate-doom")]
        process = GameProcess(sleep=lambda s: None)

        with pytest.raises(ProcessStartError, match="chocolate-doom"):
            process.start("1")

        display.terminate.assert_called_once()
        display.wait.assert_called_once()

    @patch("game_relay.clients.process.subprocess.Popen")
    def test_interrupted_warmup_stops_display_server(self, mock_popen):
        display = MagicMock(pid=10)
        mock_popen.return_value = display

        def _sleep(seconds):
            raise KeyboardInterrupt

        with pytest.raises(KeyboardInterrupt):
            GameProcess(sleep=_sleep).start("1")

        assert mock_popen.call_count == 1
        display.terminate.assert_called_once()

    @patch("game_relay.clients.process.subprocess.Popen", side_effect=FileNotFoundError("Xvfb"))
    def test_missing_display_server_raises(self, mock_popen):
        with pytest.raises(ProcessStartError, match="display server"):
            GameProcess(sleep=lambda s: None).start("1")

    @patch("game_relay.clients.process.subprocess.Popen")
    def test_shutdown_stops_leftover_children(self, mock_popen):
        display, game = MagicMock(pid=10), MagicMock(pid=11)
        mock_popen.side_effect = [display, game]
        process = GameProcess(sleep=lambda s: None)
        process.start("1")

        process.shutdown()
        process.shutdown()

        game.terminate.assert_called_once()
        game.send_signal.assert_called_once_with(signal.SIGCONT)
        display.terminate.assert_called_once()
