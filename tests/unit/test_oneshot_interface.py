from __future__ import annotations

import pytest
from fakes import FakeRemote, make_email


@pytest.fixture
def use_orchestrator(monkeypatch, make_orchestrator):
    """Make the one-shot commands build their orchestrator from fakes."""

    def _install(remote: FakeRemote):
        orchestrator = make_orchestrator(remote=remote)
        monkeypatch.setattr("outlook_search.interfaces.oneshot.OutlookSearchOrchestrator", lambda: orchestrator)
        return orchestrator

    return _install


@pytest.mark.asyncio
async def test_run_oneshot_prints_results(use_orchestrator, capsys):
    from outlook_search.interfaces.oneshot import run_oneshot

    remote = FakeRemote(authenticated=True, emails=[make_email(1), make_email(2)])
    use_orchestrator(remote)

    code = await run_oneshot("email", "budget")

    out = capsys.readouterr().out
    assert code == 0
    assert " 1. [Emails] Budget review 1  (8.0)" in out
    assert " 2. [Emails] Budget review 2  (7.9)" in out
    assert "↳ Open Email, Copy Subject" in out
    assert remote.closed


@pytest.mark.asyncio
async def test_run_oneshot_without_results(use_orchestrator, capsys):
    from outlook_search.interfaces.oneshot import run_oneshot

    use_orchestrator(FakeRemote(authenticated=True))

    code = await run_oneshot("calendar", "nothing here")

    assert code == 0
    assert "No results." in capsys.readouterr().out


@pytest.mark.asyncio
async def test_run_oneshot_rejects_unknown_tag(capsys):
    from outlook_search.interfaces.oneshot import run_oneshot

    code = await run_oneshot("contacts", "ada")

    assert code == 2
    assert "unknown tag" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_sign_in_command(use_orchestrator, capsys):
    from outlook_search.interfaces.oneshot import run_sign_in

    remote = FakeRemote(interactive_result=True)
    use_orchestrator(remote)

    code = await run_sign_in()

    assert code == 0
    assert "Signed in." in capsys.readouterr().out
    assert len(remote.called("try_auth")) == 1


@pytest.mark.asyncio
async def test_sign_in_command_failure(use_orchestrator, capsys):
    from outlook_search.interfaces.oneshot import run_sign_in

    use_orchestrator(FakeRemote(interactive_result=False))

    assert await run_sign_in() == 1
    assert "Sign-in failed." in capsys.readouterr().out


@pytest.mark.asyncio
async def test_sign_out_command(use_orchestrator, capsys):
    from outlook_search.interfaces.oneshot import run_sign_out

    remote = FakeRemote(authenticated=True)
    use_orchestrator(remote)

    assert await run_sign_out() == 0
    assert remote.called("sign_out") == [{}]


@pytest.mark.asyncio
async def test_status_command(use_orchestrator, capsys):
    from outlook_search.interfaces.oneshot import run_status

    use_orchestrator(FakeRemote(authenticated=True))

    assert await run_status() == 0
    out = capsys.readouterr().out
    assert "remote_state" in out
    assert "authenticated" in out
    assert "local_available" in out
