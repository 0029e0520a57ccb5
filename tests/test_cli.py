import sys

import yaml

from resumegpt import main as cli
from resumegpt.core.store import JSONFileSessionStore


def test_repl_session(tmp_path, monkeypatch, capsys, scripted, reply):
    config_path = tmp_path / "chat.yml"
    config_path.write_text(yaml.safe_dump({
        "data_path": str(tmp_path / "sessions"),
        "log_path": str(tmp_path / "logs" / "cli.jsonl"),
    }))

    model = scripted(reply("Nice to meet you, Jane.", name="Jane"))
    monkeypatch.setattr(cli, "build_chat_model", lambda config: model.as_runnable())
    monkeypatch.setattr(sys, "argv", ["resumegpt", "--config", str(config_path), "--session", "cli-test"])

    lines = iter(["My name is Jane", "", "/show", "/pdf fancy", "/quit"])
    monkeypatch.setattr("builtins.input", lambda prompt="": next(lines))

    cli.main()

    out = capsys.readouterr().out
    assert "resumegpt> Nice to meet you, Jane." in out
    assert '"name": "Jane"' in out
    assert "Unknown template 'fancy'" in out

    record = JSONFileSessionStore(str(tmp_path / "sessions")).load_session("cli-test", cli.USER_ID)
    assert record.document["name"] == "Jane"
