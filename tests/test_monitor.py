"""Tests for the psutil metrics source."""

import os
from types import SimpleNamespace
from unittest.mock import Mock, patch

import psutil
import pytest

from fairshare.errors import MetricsUnavailable
from fairshare.models import ProcessSample
from fairshare.monitor import PsutilMetricsSource


class TestPsutilMetricsSource:
    """Tests for PsutilMetricsSource against the running host."""

    def test_source_creation(self):
        """Test PsutilMetricsSource can be instantiated without sampling."""
        source = PsutilMetricsSource()
        assert not source.primed

    def test_negative_window_is_clamped(self):
        source = PsutilMetricsSource(sample_window=-1.0)
        assert source._sample_window == 0.0

    def test_list_processes_returns_samples(self):
        """Test list_processes returns a non-empty list of ProcessSample."""
        source = PsutilMetricsSource(sample_window=0.1)

        samples = source.list_processes()

        assert source.primed
        assert len(samples) > 0
        for sample in samples:
            assert isinstance(sample, ProcessSample)
            assert isinstance(sample.cpu_usage_percent, float)
            assert sample.cpu_usage_percent >= 0.0
            assert sample.user_id is None or isinstance(sample.user_id, str)

    def test_second_listing_skips_priming(self):
        source = PsutilMetricsSource(sample_window=0.1)
        source.list_processes()

        with patch.object(source, "_prime") as prime:
            source.list_processes()

        prime.assert_not_called()

    @pytest.mark.skipif(not hasattr(os, "getuid"), reason="POSIX only")
    def test_own_user_is_resolvable(self):
        source = PsutilMetricsSource(sample_window=0.0)

        samples = source.list_processes()
        users = source.list_users()

        own_uid = str(os.getuid())
        assert own_uid in users
        assert any(s.user_id == own_uid for s in samples)

    def test_core_count(self):
        source = PsutilMetricsSource()
        assert source.logical_core_count() == float(psutil.cpu_count(logical=True))

    def test_load_average(self):
        source = PsutilMetricsSource()
        load = source.load_average_one_minute()
        assert isinstance(load, float)
        assert load >= 0.0

    def test_undetermined_core_count(self):
        source = PsutilMetricsSource()
        with patch("fairshare.monitor.psutil.cpu_count", return_value=None):
            with pytest.raises(MetricsUnavailable):
                source.logical_core_count()

    def test_enumeration_failure_raises_metrics_unavailable(self):
        source = PsutilMetricsSource(sample_window=0.0)
        with patch(
            "fairshare.monitor.psutil.process_iter",
            side_effect=psutil.AccessDenied(),
        ):
            with pytest.raises(MetricsUnavailable):
                source.list_processes()

    def test_load_average_failure(self):
        source = PsutilMetricsSource()
        with patch("fairshare.monitor.psutil.getloadavg", side_effect=OSError("nope")):
            with pytest.raises(MetricsUnavailable):
                source.load_average_one_minute()

    def test_owner_resolves_username_to_uid(self):
        """Owner name is mapped back to a uid so it matches list_users() keys."""
        fake_pwd = Mock()
        fake_pwd.getpwnam.return_value = SimpleNamespace(pw_uid=1000)
        info = {"uids": None, "username": "alice", "cpu_percent": 1.0}
        with patch("fairshare.monitor.pwd", fake_pwd):
            assert PsutilMetricsSource._owner_id(info) == "1000"
        fake_pwd.getpwnam.assert_called_once_with("alice")

    def test_owner_unknown_to_pwd_keeps_username(self):
        fake_pwd = Mock()
        fake_pwd.getpwnam.side_effect = KeyError("alice")
        info = {"uids": None, "username": "alice", "cpu_percent": 1.0}
        with patch("fairshare.monitor.pwd", fake_pwd):
            assert PsutilMetricsSource._owner_id(info) == "alice"

    def test_owner_is_username_without_pwd(self):
        """Without a pwd database (Windows) the owner name is the id."""
        info = {"uids": None, "username": "alice", "cpu_percent": 1.0}
        with patch("fairshare.monitor.pwd", None):
            assert PsutilMetricsSource._owner_id(info) == "alice"

    def test_owner_missing_entirely(self):
        assert PsutilMetricsSource._owner_id({"uids": None, "username": None}) is None
