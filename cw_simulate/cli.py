"""
Command line front end for cosmwasm-simulate.

Commands:
  - run      : load a contract (plus its contract/ siblings), watch for changes,
               optionally serve REST, then drop into an interactive prompt
  - serve    : same as run without the prompt (REST only)
  - schema   : print the message types declared in the contract's schema/ folder
  - version  : print the version

Usage:
  cw-simulate run ./counter.py --port 8000 --genesis genesis.json
  python -m cw_simulate schema ./counter.py

Prompt commands:
  instantiate|execute|query <json>   run a call (prompts for JSON if omitted)
  switch <address>                   change the current contract
  account <address>                  change the sender account
  contracts                          list loaded contracts
  schema                             show the current contract's message types
  help | exit
"""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Callable, List, Optional

import typer
import uvicorn

from .config import Settings, load_settings
from .engine.chain import Chain
from .engine.simulator import KINDS, Simulator
from .engine.watcher import Artifact, Watcher, discover_artifacts
from .errors import NoAccountFound, SimError
from .logging import setup_logging
from .schema import SchemaLookup
from .version import __version__

app = typer.Typer(add_completion=False, help="cosmwasm-simulate: local smart-contract simulator")

PROMPT_HELP = """\
  instantiate|execute|query <json>   run a call
  switch <address>                   change the current contract
  account <address>                  change the sender account
  contracts                          list loaded contracts
  schema                             show message types of the current contract
  help | exit"""


class Repl:
    """Line-oriented prompt over a Simulator. ``handle`` returns the text to print."""

    def __init__(
        self,
        sim: Simulator,
        *,
        artifacts: Optional[List[Artifact]] = None,
        account: Optional[str] = None,
        read_line: Callable[[str], str] = input,
    ) -> None:
        self.sim = sim
        self.artifacts = {a.address: a for a in artifacts or ()}
        self.account = account or sim.chain.default_account()
        self._read_line = read_line
        self.done = False

    @property
    def prompt(self) -> str:
        return f"[{self.sim.contract} as {self.account}]> "

    def handle(self, line: str) -> str:
        line = line.strip()
        if not line:
            return ""
        cmd, _, rest = line.partition(" ")
        cmd = cmd.lower()
        rest = rest.strip()

        if cmd in ("exit", "quit"):
            self.done = True
            return ""
        if cmd == "help":
            return PROMPT_HELP
        if cmd in KINDS:
            if not rest:
                rest = self._read_line("Input json string: ").strip()
            try:
                json.loads(rest)
            except ValueError as e:
                return f"invalid JSON: {e}"
            result = self.sim.run(cmd, rest, self.account)
            lines = [f"{a.key} = {a.value}" for a in result.attributes]
            lines.append(result.to_json())
            if result.ok and cmd != "query":
                lines.append(f"gas used: {result.gas_used}")
            return "\n".join(lines)
        if cmd == "switch":
            target = rest or ""
            if target not in self.sim.chain.registry:
                return f"Smart contract {target} not loaded"
            self.sim.contract = target
            return f"switched to {target}"
        if cmd == "account":
            try:
                self.account = self.sim.chain.resolve_account(rest or None)
            except NoAccountFound as e:
                return str(e)
            return f"sender is now {self.account}"
        if cmd == "contracts":
            rows = []
            for inst in self.sim.chain.registry:
                d = inst.describe()
                marker = "*" if d["address"] == self.sim.contract else " "
                rows.append(
                    f"{marker} {d['address']}  height={d['height']}  gas_used={d['gas_used']}  keys={d['storage_keys']}"
                )
            return "\n".join(rows) or "no contracts loaded"
        if cmd == "schema":
            art = self.artifacts.get(self.sim.contract or "")
            if art is None:
                return "no schema for this contract"
            return format_schema(SchemaLookup.for_artifact(art.path, self.sim.chain.settings.schema_folder))
        return f"unknown command {cmd!r}; try help"

    def run(self) -> None:
        typer.secho(PROMPT_HELP, fg=typer.colors.BLUE)
        while not self.done:
            try:
                line = self._read_line(self.prompt)
            except (EOFError, KeyboardInterrupt):
                typer.echo()
                break
            out = self.handle(line)
            if out:
                typer.echo(out)


def format_schema(lookup: SchemaLookup) -> str:
    if not len(lookup):
        return "no message types declared"
    out: List[str] = []
    for title in lookup.message_types():
        mt = lookup.get(title)
        if mt is None:
            continue
        out.append(f"{title} {{" if mt.is_enum else f"{title}:")
        for variant, members in sorted(mt.variants.items()):
            fields = ", ".join(f"{m.name}: {m.type_name}" for m in members)
            out.append(f"    {variant} {{ {fields} }}" if mt.is_enum else f"    {fields}")
        if mt.is_enum:
            out.append("}")
    return "\n".join(out)


# ------------------------------ bootstrap ---------------------------------- #


def _settings(genesis: Optional[Path], gas_limit: Optional[int], log_format: Optional[str]) -> Settings:
    overrides = {}
    if genesis is not None:
        overrides["genesis_file"] = genesis
    if gas_limit is not None:
        overrides["gas_limit"] = gas_limit
    if log_format is not None:
        overrides["log_format"] = log_format
    return load_settings(**overrides)


def _boot(file: Path, settings: Settings):
    setup_logging(level=settings.log_level, log_format=settings.log_format)
    chain = Chain(settings)
    artifacts = discover_artifacts(file, contract_folder=settings.contract_folder)
    watcher = Watcher(chain, artifacts)
    watcher.load_all()
    sim = Simulator(chain, contract=artifacts[0].address)
    return chain, sim, watcher, artifacts


def _serve_in_thread(sim: Simulator, host: str, port: int) -> threading.Thread:
    from .api.app import create_app

    server = uvicorn.Server(uvicorn.Config(create_app(sim), host=host, port=port, log_config=None))
    t = threading.Thread(target=server.run, name="cw-simulate-rest", daemon=True)
    t.start()
    return t


@app.command("run")
def run(
    file: Path = typer.Argument(..., help="Contract artifact to load"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Serve REST on this port"),
    host: str = typer.Option("127.0.0.1", "--host", help="REST bind address"),
    genesis: Optional[Path] = typer.Option(None, "--genesis", "-g", help="Genesis JSON (accounts, staking)"),
    gas_limit: Optional[int] = typer.Option(None, "--gas-limit", help="Gas budget per contract instance"),
    account: Optional[str] = typer.Option(None, "--account", "-a", help="Sender account"),
    watch: bool = typer.Option(True, "--watch/--no-watch", help="Reload artifacts when they change"),
):
    """
    Load a contract and start an interactive session.
    """
    try:
        settings = _settings(genesis, gas_limit, "console")
        chain, sim, watcher, artifacts = _boot(file, settings)
    except SimError as e:
        typer.secho(f"error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2)

    if watch:
        watcher.start()
    if port is not None:
        _serve_in_thread(sim, host, port)
        typer.secho(f"REST listening on http://{host}:{port}", fg=typer.colors.GREEN)
    try:
        Repl(sim, artifacts=artifacts, account=account).run()
    finally:
        watcher.stop(timeout=2.0)
        chain.close()


@app.command("serve")
def serve(
    file: Path = typer.Argument(..., help="Contract artifact to load"),
    port: int = typer.Option(8000, "--port", "-p"),
    host: str = typer.Option("127.0.0.1", "--host"),
    genesis: Optional[Path] = typer.Option(None, "--genesis", "-g"),
    gas_limit: Optional[int] = typer.Option(None, "--gas-limit"),
    watch: bool = typer.Option(True, "--watch/--no-watch"),
):
    """
    Load a contract and serve the REST API until interrupted.
    """
    from .api.app import create_app

    try:
        settings = _settings(genesis, gas_limit, None)
        chain, sim, watcher, _ = _boot(file, settings)
    except SimError as e:
        typer.secho(f"error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2)

    try:
        uvicorn.run(create_app(sim, watcher=watcher if watch else None), host=host, port=port, log_config=None)
    finally:
        chain.close()


@app.command("schema")
def schema(
    file: Path = typer.Argument(..., help="Contract artifact whose schema/ folder to read"),
    folder: str = typer.Option("schema", "--folder", help="Schema folder name"),
):
    """
    Print the message types declared next to a contract.
    """
    typer.echo(format_schema(SchemaLookup.for_artifact(file, folder)))


@app.command("version")
def version():
    """
    Print the version.
    """
    typer.echo(__version__)


def main() -> None:  # pragma: no cover
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
