"""Tests for the path-based exclusion rule table."""

from __future__ import annotations

import pytest

from aotselect.hosts import HostNames
from aotselect.models import Outcome
from aotselect.rules import (
    DEFAULT_RULES,
    RuleContext,
    build_replacement_lookup,
    file_name,
    first_match,
    is_host_binary,
    is_native_runtime_asset,
    is_replaced,
)

_HOSTS = HostNames("apphost.exe", "hostfxr.dll", "hostpolicy.dll")


def _context(*replacements: str) -> RuleContext:
    return RuleContext(hosts=_HOSTS, replacement_names=build_replacement_lookup(replacements))


def test_rule_table_order_is_fixed() -> None:
    assert [rule.name for rule in DEFAULT_RULES] == [
        "host-binary",
        "native-runtime-tree",
        "replacement-shadowed",
    ]
    assert all(rule.outcome is Outcome.EXCLUDE for rule in DEFAULT_RULES)


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("C:\\app\\bin\\APPHOST.EXE", True),
        ("/out/publish/apphost.exe", True),
        ("runtimes/win-x64/native/hostfxr.dll", True),
        ("/x/hostpolicy.dll.bak", True),
        ("/x/HostFxr.dll", False),
        ("/x/apphost.exe.config", False),
        ("/x/App.dll", False),
    ],
)
def test_is_host_binary(path: str, expected: bool) -> None:
    assert is_host_binary(path, _context()) is expected


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("/nuget/microsoft.netcore.app.runtime.linux-x64/runtimes/linux-x64/native/libclrjit.so", True),
        ("C:\\nuget\\microsoft.netcore.app\\runtimes\\win-x64\\native\\coreclr.dll", True),
        ("/nuget/microsoft.netcore.app/runtimes/linux-x64/lib/System.Runtime.dll", False),
        ("/nuget/other.package/runtimes/linux-x64/native/libfoo.so", False),
        ("/nuget/Microsoft.NETCore.App/runtimes/linux-x64/native/libclrjit.so", False),
    ],
)
def test_is_native_runtime_asset(path: str, expected: bool) -> None:
    assert is_native_runtime_asset(path, _context()) is expected


def test_replacement_lookup_uses_bare_file_names() -> None:
    lookup = build_replacement_lookup(
        ["/sdk/System.Private.CoreLib.dll"],
        ["C:\\framework\\System.Collections.dll", "/framework/System.Collections.dll"],
    )

    assert lookup == frozenset({"System.Private.CoreLib.dll", "System.Collections.dll"})


def test_is_replaced_matches_file_name_regardless_of_directory() -> None:
    context = _context("/aot/sdk/System.Private.CoreLib.dll")

    assert is_replaced("/app/obj/System.Private.CoreLib.dll", context) is True
    assert is_replaced("C:\\app\\System.Private.CoreLib.dll", context) is True
    assert is_replaced("/app/system.private.corelib.dll", context) is False


def test_file_name_accepts_both_separators() -> None:
    assert file_name("a/b\\c.dll") == "c.dll"
    assert file_name("c.dll") == "c.dll"


def test_first_match_short_circuits_in_table_order() -> None:
    context = _context("apphost.exe")

    rule = first_match("/out/apphost.exe", context)

    assert rule is not None
    assert rule.name == "host-binary"
    assert first_match("/out/App.dll", context) is None
