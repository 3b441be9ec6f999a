from pathlib import Path

PACKAGE_ROOT = Path(__file__).resolve().parent.parent / "chatmind"

CORE_FILES = [
    "state.py",
    "mentions.py",
    "presence.py",
    "reply_target.py",
    "event_bus.py",
    "services/ai_service.py",
    "services/ai_turn_service.py",
    "services/directory_service.py",
    "services/room_service.py",
    "services/session_service.py",
]


def test_core_modules_do_not_depend_on_terminal_ui() -> None:
    forbidden = [
        "prompt_toolkit",
        "chatmind.ui",
        "print(",
    ]
    for rel_path in CORE_FILES:
        content = (PACKAGE_ROOT / rel_path).read_text(encoding="utf-8")
        for pattern in forbidden:
            assert pattern not in content, f"{rel_path} still uses '{pattern}'"


def test_reducer_performs_no_io() -> None:
    content = (PACKAGE_ROOT / "state.py").read_text(encoding="utf-8")
    for pattern in ("gateway", "logging", "threading", "time."):
        assert pattern not in content, f"state.py references '{pattern}'"
