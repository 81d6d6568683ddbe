"""
AGENTREG CLI - operate a local registry database.

Usage:
    python -m agentreg register REF --as IDENTITY
    python -m agentreg show ID
    python -m agentreg owner ID
    python -m agentreg count
    python -m agentreg list [--owner IDENTITY]
    python -m agentreg update-capability ID REF --as IDENTITY
    python -m agentreg update-state ID PAYLOAD --as IDENTITY [--hex]
    python -m agentreg set-active ID on|off --as IDENTITY
    python -m agentreg execute ID PAYLOAD [--hex]
    python -m agentreg events [--agent ID] [--limit N]
    python -m agentreg verify
    python -m agentreg serve

The --as identity is trusted as given: the CLI is a local operator tool.
"""
import argparse
import sys

from agentreg import config
from agentreg.errors import RegistryError
from agentreg.logging import configure_logging
from agentreg.registry import Registry


def _payload(args) -> bytes:
    if args.hex:
        return bytes.fromhex(args.payload)
    return args.payload.encode("utf-8")


def _print_agent(agent) -> None:
    print(f"  id:          {agent.agent_id}")
    print(f"  owner:       {agent.owner}")
    print(f"  capability:  {agent.capability_ref}")
    print(f"  state:       {agent.state_fingerprint.hex()}")
    print(f"  active:      {'yes' if agent.active else 'no'}")
    print(f"  updated:     {agent.updated_at}")


def cmd_register(registry: Registry, args) -> None:
    agent_id = registry.register(args.capability_ref, args.caller)
    print(f"Registered agent {agent_id} (owner {args.caller})")


def cmd_show(registry: Registry, args) -> None:
    agent = registry.get_agent(args.agent_id)
    print("=" * 50)
    print(f"AGENT {agent.agent_id}")
    print("=" * 50)
    _print_agent(agent)


def cmd_owner(registry: Registry, args) -> None:
    print(registry.owner_of(args.agent_id))


def cmd_count(registry: Registry, args) -> None:
    print(registry.total_count())


def cmd_list(registry: Registry, args) -> None:
    agents = registry.list_agents(owner=args.owner, limit=args.limit, offset=args.offset)
    print("=" * 50)
    print("AGENTS")
    print("=" * 50)
    if not agents:
        print("\n(no agents registered)")
        return
    for a in agents:
        status = "active" if a.active else "inactive"
        print(f"\n  [{a.agent_id}] {a.capability_ref} ({status})")
        print(f"       owner: {a.owner}")
        print(f"       state: {a.state_fingerprint.hex()[:16]}...")


def cmd_update_capability(registry: Registry, args) -> None:
    registry.update_capability(args.agent_id, args.capability_ref, args.caller)
    print(f"Agent {args.agent_id} capability -> {args.capability_ref}")


def cmd_update_state(registry: Registry, args) -> None:
    fingerprint = registry.update_state(args.agent_id, _payload(args), args.caller)
    print(f"Agent {args.agent_id} state -> {fingerprint.hex()}")


def cmd_set_active(registry: Registry, args) -> None:
    active = args.state == "on"
    registry.set_active(args.agent_id, active, args.caller)
    print(f"Agent {args.agent_id} {'activated' if active else 'deactivated'}")


def cmd_execute(registry: Registry, args) -> None:
    result = registry.execute(args.agent_id, _payload(args))
    print(result.hex())


def cmd_events(registry: Registry, args) -> None:
    events = registry.list_events(agent_id=args.agent, limit=args.limit)
    print("=" * 50)
    print(f"AGENTREG EVENTS (last {args.limit})")
    print("=" * 50)
    if not events:
        print("\n(no entries)")
        return
    for e in events:
        print(f"\n  [{e.seq}] {e.kind.value} agent={e.agent_id}")
        print(f"       at {e.timestamp}")
        print(f"       hash: {e.hash[:16]}...")


def cmd_verify(registry: Registry, args) -> None:
    if registry.verify_events():
        print("Event chain OK")
        return
    print("Event chain FAILED verification")
    sys.exit(1)


def cmd_serve(registry: Registry, args) -> None:
    import uvicorn

    from agentreg.api_server import create_app
    from agentreg.observability import configure_observability

    configure_observability()
    host, port = config.get_server_address()
    uvicorn.run(create_app(registry), host=args.host or host, port=args.port or port)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="agentreg", description="Agent registry operator CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    def owned(p):
        p.add_argument("--as", dest="caller", required=True, help="caller identity")
        return p

    def payload(p):
        p.add_argument("payload")
        p.add_argument("--hex", action="store_true", help="payload is hex-encoded bytes")
        return p

    p = owned(sub.add_parser("register", help="register a new agent"))
    p.add_argument("capability_ref")
    p.set_defaults(func=cmd_register)

    p = sub.add_parser("show", help="show one agent")
    p.add_argument("agent_id", type=int)
    p.set_defaults(func=cmd_show)

    p = sub.add_parser("owner", help="print an agent's owner")
    p.add_argument("agent_id", type=int)
    p.set_defaults(func=cmd_owner)

    sub.add_parser("count", help="identifiers issued so far").set_defaults(func=cmd_count)

    p = sub.add_parser("list", help="list agents")
    p.add_argument("--owner")
    p.add_argument("--limit", type=int, default=config.DEFAULT_PAGE_SIZE)
    p.add_argument("--offset", type=int, default=0)
    p.set_defaults(func=cmd_list)

    p = owned(sub.add_parser("update-capability", help="replace capability reference"))
    p.add_argument("agent_id", type=int)
    p.add_argument("capability_ref")
    p.set_defaults(func=cmd_update_capability)

    p = owned(sub.add_parser("update-state", help="set state fingerprint from a payload"))
    p.add_argument("agent_id", type=int)
    payload(p)
    p.set_defaults(func=cmd_update_state)

    p = owned(sub.add_parser("set-active", help="pause or resume an agent"))
    p.add_argument("agent_id", type=int)
    p.add_argument("state", choices=["on", "off"])
    p.set_defaults(func=cmd_set_active)

    p = sub.add_parser("execute", help="simulate execution")
    p.add_argument("agent_id", type=int)
    payload(p)
    p.set_defaults(func=cmd_execute)

    p = sub.add_parser("events", help="show recent notifications")
    p.add_argument("--agent", type=int)
    p.add_argument("--limit", type=int, default=20)
    p.set_defaults(func=cmd_events)

    sub.add_parser("verify", help="verify the notification hash chain").set_defaults(func=cmd_verify)

    p = sub.add_parser("serve", help="run the HTTP API")
    p.add_argument("--host")
    p.add_argument("--port", type=int)
    p.set_defaults(func=cmd_serve)

    return parser


def main(argv=None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(config.get_log_level())
    registry = Registry.from_config()
    try:
        args.func(registry, args)
    except RegistryError as exc:
        print(f"Error: {exc}")
        sys.exit(1)
    except ValueError as exc:
        print(f"Error: {exc}")
        sys.exit(2)


if __name__ == "__main__":
    main()
