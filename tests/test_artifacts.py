"""!
@brief Leftover artifact cleanup tests.
@details Exercises :mod:`wine_janitor.artifacts` against a temporary home
directory and a catalogue pointing at temporary "system" locations so no
real ``/usr`` path is ever touched.
"""

from __future__ import annotations

import pathlib
import sys
from typing import List

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from wine_janitor import artifacts, constants, exec_utils  # noqa: E402
from wine_janitor.capabilities import ToolRegistry  # noqa: E402
from wine_janitor.constants import ArtifactScope  # noqa: E402


class _FakeEscalator:
    """!
    @brief Records privileged commands instead of running ``sudo``.
    """

    def __init__(self, authenticates: bool = True) -> None:
        self.authenticates = authenticates
        self.auth_calls = 0
        self.commands: List[List[str]] = []

    def authenticate(self) -> bool:
        self.auth_calls += 1
        return self.authenticates

    def run(self, command, *, event):
        self.commands.append(list(command))
        return exec_utils.CommandResult(list(command), 0, "", "", 0.0)


def _no_prompt(prompt: str) -> str:
    raise AssertionError(f"unexpected prompt: {prompt}")


def _touch(path: pathlib.Path, text: str = "") -> pathlib.Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def _system_catalogue(root: pathlib.Path):
    return (
        (ArtifactScope.SYSTEM, f"{root}/applications/*"),
        (ArtifactScope.SYSTEM, f"{root}/applications/*.desktop"),
        (ArtifactScope.SYSTEM, f"{root}/mime/packages/x-wine*"),
    )


def _cleaner(home, *, catalogue=constants.ARTIFACT_CATALOGUE, escalator=None, input_func=_no_prompt, lines=None):
    return artifacts.ArtifactCleaner(
        home=home,
        tools=ToolRegistry(resolver=lambda _name: None),
        escalator=escalator or _FakeEscalator(),
        catalogue=catalogue,
        input_func=input_func,
        output=(lines.append if lines is not None else (lambda _line: None)),
    )


def test_mentions_is_case_insensitive_and_rejects_empty_needle() -> None:
    """!
    @brief Substring matching ignores case; empty names match nothing.
    """

    assert artifacts.mentions("Foo-App.desktop", "foo-app")
    assert artifacts.mentions("WINE-extension-txt", "wine")
    assert not artifacts.mentions("anything", "")


def test_match_catalogue_filters_by_name_or_marker(tmp_path) -> None:
    """!
    @brief System matches mention the application or Wine itself.
    """

    root = tmp_path / "usr"
    viewer = _touch(root / "applications" / "foo-viewer.desktop")
    browser = _touch(root / "applications" / "wine-browser.desktop")
    _touch(root / "applications" / "gimp.desktop")
    mime = _touch(root / "mime" / "packages" / "x-wine-extension-foo.xml")

    found = artifacts.match_catalogue(_system_catalogue(root), ArtifactScope.SYSTEM, tmp_path, "Foo")

    assert [artifact.path for artifact in found] == [viewer, browser, mime]
    assert [artifact.matched_name for artifact in found] == ["Foo", "wine", "Foo"]
    assert all(artifact.scope is ArtifactScope.SYSTEM for artifact in found)
    assert artifacts.match_catalogue(_system_catalogue(root), ArtifactScope.USER, tmp_path, "Foo") == []


def test_clean_user_removes_menu_catalogue_and_desktop_leftovers(tmp_path) -> None:
    """!
    @brief User leftovers are removed without prompting.
    """

    home = tmp_path / "home"
    programs = home / ".local" / "share" / "applications" / "wine" / "Programs"
    menu_entry = _touch(programs / "Foo App.desktop")
    other_entry = _touch(programs / "Other.desktop")
    extension = _touch(home / ".local" / "share" / "applications" / "wine-extension-txt.desktop")
    mime = _touch(home / ".local" / "share" / "mime" / "packages" / "x-wine-extension-foo.xml")
    unrelated_app = _touch(home / ".local" / "share" / "applications" / "firefox.desktop")

    desktop = home / "Desktop"
    by_name = _touch(desktop / "Foo App.desktop")
    by_content = _touch(desktop / "shortcut.desktop", "Exec=env WINEPREFIX=x wine Foo App.exe\nName=Foo App\n")
    unrelated = _touch(desktop / "notes.desktop", "Name=Notes\n")
    stray_lnk = _touch(desktop / "Thing.LNK")
    wine_lnk = _touch(desktop / "wine-game.lnk")
    text_file = _touch(desktop / "Foo App.txt")

    lines: List[str] = []
    removed = _cleaner(home, lines=lines).clean_user("Foo App")

    for path in (menu_entry, extension, mime, by_name, by_content, wine_lnk):
        assert not path.exists()
        assert path in removed
    for path in (other_entry, unrelated_app, unrelated, stray_lnk, text_file):
        assert path.exists()
    assert programs.parent.exists()
    assert f"Removing desktop entry: {menu_entry}" in lines


def test_clean_user_prunes_empty_wine_menu_container(tmp_path) -> None:
    """!
    @brief The Wine menu folder goes away once it holds nothing.
    """

    home = tmp_path / "home"
    container = home / ".local" / "share" / "applications" / "wine"
    container.mkdir(parents=True)

    _cleaner(home).clean_user("Anything")

    assert not container.exists()


def test_refresh_user_caches_runs_available_tools(tmp_path, monkeypatch) -> None:
    """!
    @brief Installed cache tools are invoked against the user directories.
    """

    home = tmp_path / "home"
    calls: List[List[str]] = []

    def fake_run_command(command, **kwargs):
        calls.append(list(command))
        return exec_utils.CommandResult(list(command), 0, "", "", 0.0)

    monkeypatch.setattr(exec_utils, "run_command", fake_run_command)
    cleaner = artifacts.ArtifactCleaner(
        home=home,
        tools=ToolRegistry(resolver=lambda name: f"/usr/bin/{name}"),
        escalator=_FakeEscalator(),
        input_func=_no_prompt,
        output=lambda _line: None,
    )

    cleaner.refresh_user_caches()
    assert calls == [
        ["/usr/bin/update-desktop-database", f"{home}/.local/share/applications"],
        ["/usr/bin/update-mime-database", f"{home}/.local/share/mime"],
    ]

    (home / ".local" / "share" / "icons" / "hicolor").mkdir(parents=True)
    calls.clear()
    cleaner.refresh_user_caches()
    assert calls[-1] == ["/usr/bin/gtk-update-icon-cache", "-f", f"{home}/.local/share/icons/hicolor"]


def test_clean_system_declined_leaves_files(tmp_path) -> None:
    """!
    @brief Declining the batch prompt never escalates.
    """

    root = tmp_path / "usr"
    target = _touch(root / "applications" / "wine-foo.desktop")
    escalator = _FakeEscalator()
    prompts: List[str] = []

    def decline(prompt: str) -> str:
        prompts.append(prompt)
        return "n"

    lines: List[str] = []
    cleaner = _cleaner(tmp_path, catalogue=_system_catalogue(root), escalator=escalator, input_func=decline, lines=lines)

    assert cleaner.clean_system("Foo") == []
    assert target.exists()
    assert escalator.auth_calls == 0
    assert escalator.commands == []
    assert prompts == ["Remove these system files using sudo? [y/N]: "]
    assert f"  {target}" in lines


def test_clean_system_failed_authentication_skips_removal(tmp_path) -> None:
    """!
    @brief A refused ``sudo -v`` means nothing is removed.
    """

    root = tmp_path / "usr"
    _touch(root / "applications" / "wine-foo.desktop")
    escalator = _FakeEscalator(authenticates=False)
    cleaner = _cleaner(tmp_path, catalogue=_system_catalogue(root), escalator=escalator, input_func=lambda _p: "y")

    assert cleaner.clean_system("Foo") == []
    assert escalator.auth_calls == 1
    assert escalator.commands == []


def test_clean_system_confirmed_removes_each_candidate(tmp_path) -> None:
    """!
    @brief Confirmed cleanup authenticates once and removes every match.
    """

    root = tmp_path / "usr"
    first = _touch(root / "applications" / "foo-viewer.desktop")
    second = _touch(root / "applications" / "wine-browser.desktop")
    escalator = _FakeEscalator()
    cleaner = _cleaner(tmp_path, catalogue=_system_catalogue(root), escalator=escalator, input_func=lambda _p: "yes")

    removed = cleaner.clean_system("foo")

    assert removed == [first, second]
    assert escalator.auth_calls == 1
    assert escalator.commands == [
        ["rm", "-rf", "--", str(first)],
        ["rm", "-rf", "--", str(second)],
    ]


def test_clean_system_without_candidates_does_not_prompt(tmp_path) -> None:
    """!
    @brief Nothing found means no question and no escalation.
    """

    escalator = _FakeEscalator()
    cleaner = _cleaner(tmp_path, catalogue=_system_catalogue(tmp_path / "empty"), escalator=escalator)

    assert cleaner.clean_system("Foo") == []
    assert escalator.auth_calls == 0


def test_clean_runs_user_scope_even_when_system_declined(tmp_path) -> None:
    """!
    @brief The full cleanup removes user files regardless of the system answer.
    """

    home = tmp_path / "home"
    user_file = _touch(home / ".local" / "share" / "applications" / "wine-extension-doc.desktop")
    root = tmp_path / "usr"
    system_file = _touch(root / "applications" / "wine-doc.desktop")
    catalogue = constants.ARTIFACT_CATALOGUE[:7] + _system_catalogue(root)
    cleaner = _cleaner(home, catalogue=catalogue, input_func=lambda _p: "")

    cleaner.clean("Doc")

    assert not user_file.exists()
    assert system_file.exists()
