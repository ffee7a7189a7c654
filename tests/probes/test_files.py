from __future__ import annotations

from pathlib import Path

import pytest

from intune_automation.probes import FilePresenceProbe, MatchMode
from intune_automation.probes.files import expand_pattern


def test_expand_pattern_uses_environment_and_globs(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    (tmp_path / "logs").mkdir()
    (tmp_path / "logs" / "a.log").write_text("a", encoding="utf-8")
    (tmp_path / "logs" / "b.log").write_text("b", encoding="utf-8")
    (tmp_path / "logs" / "nested.log").mkdir()
    monkeypatch.setenv("AGENT_HOME", str(tmp_path))

    matches = expand_pattern("$AGENT_HOME/logs/*.log")

    assert [path.name for path in matches] == ["a.log", "b.log"]


def test_all_mode_needs_every_pattern(tmp_path: Path) -> None:
    present = tmp_path / "agent.exe"
    present.write_bytes(b"MZ")

    probe = FilePresenceProbe([str(present), str(tmp_path / "missing.cfg")])
    result = probe.detect()

    assert not result.compliant
    assert "missing.cfg" in result.message
    assert FilePresenceProbe([str(present)]).detect().compliant


def test_any_mode_needs_one_pattern(tmp_path: Path) -> None:
    (tmp_path / "agent.exe").write_bytes(b"MZ")

    probe = FilePresenceProbe(
        [str(tmp_path / "missing.cfg"), str(tmp_path / "*.exe")],
        mode=MatchMode.ANY,
    )

    assert probe.detect().compliant
    assert not FilePresenceProbe([str(tmp_path / "nope")], mode=MatchMode.ANY).detect().compliant


def test_min_size_filters_small_files(tmp_path: Path) -> None:
    target = tmp_path / "cert.pfx"
    target.write_bytes(b"x" * 10)

    small = FilePresenceProbe([str(target)], min_size=11).detect()
    large_enough = FilePresenceProbe([str(target)], min_size=10).detect()

    assert not small.compliant
    assert "at least 11 bytes" in small.message
    assert large_enough.compliant


def test_requires_patterns() -> None:
    with pytest.raises(ValueError):
        FilePresenceProbe([])
