#!/usr/bin/env python3
"""
CSR Coach - authorization policy CLI.
Inspect what a role may do under the loaded policy, check role changes, or run the API.
"""

import argparse
import logging
import sys
from typing import List, Optional

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", stream=sys.stderr
)

# Permissions worth eyeballing when debugging a role's access.
KEY_PERMISSIONS = [
    "users:invite",
    "users:view_all",
    "users:edit",
    "users:change_role",
    "settings:edit",
    "billing:manage",
]


def _engine():
    from coach.authz.config import load_policy_table
    from coach.authz.policy import PolicyEngine

    return PolicyEngine(load_policy_table())


def show_permissions(role: str, *, limit: int = 10) -> None:
    """Print a summary of what `role` is granted."""
    from coach.authz.roles import Role, parse_role

    engine = _engine()
    perms = sorted(engine.role_permissions(role))
    known = parse_role(role) is not Role.UNKNOWN

    print(f"\n=== Permissions for role: {role} ===\n")
    print(f"1. Known role: {known}")
    print(f"   Roles with permissions: {', '.join(r.value for r in engine.table.role_permissions)}")
    print(f"   Rank: {engine.rank(role)}   Scope: {engine.data_scope(role).value}")
    print(f"\n2. Total permissions for role: {len(perms)}")
    print("\n3. Key permissions check:")
    for perm in KEY_PERMISSIONS:
        mark = "yes" if engine.has_permission(role, perm) else "no"
        print(f"   {perm}: {mark}")
    print(f"\n4. First {limit} permissions:")
    for perm in perms[:limit]:
        print(f"   - {perm}")
    assignable = [r.value for r in engine.assignable_roles(role)]
    print(f"\n5. Assignable roles: {', '.join(assignable) if assignable else '(none)'}\n")


def check_transition(actor_role: str, current_role: str, new_role: str) -> int:
    """Print the role-change decision; returns a process exit code (0 = allowed)."""
    result = _engine().validate_role_transition(actor_role, current_role, new_role)
    if result.valid:
        print(f"ALLOWED: {actor_role} may change {current_role} -> {new_role}")
        return 0
    print(f"DENIED: {result.message}")
    return 1


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Inspect the CSR Coach authorization policy",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # What can a manager do?
  python main.py --permissions manager

  # May an admin demote a manager to trainee?
  python main.py --check-transition admin manager trainee

  # Run the API server
  python main.py --serve --port 8080
        """,
    )
    parser.add_argument("--permissions", metavar="ROLE", help="Show permissions, rank and scope for a role")
    parser.add_argument("--limit", type=int, default=10, help="How many permissions to list (default: 10)")
    parser.add_argument(
        "--check-transition",
        nargs=3,
        metavar=("ACTOR", "CURRENT", "NEW"),
        help="Validate a role change requested by ACTOR for a user currently holding CURRENT",
    )
    parser.add_argument("--serve", action="store_true", help="Run the HTTP API server")
    parser.add_argument("--host", default="0.0.0.0", help="API server bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8080, help="API server listen port (default: 8080)")

    args = parser.parse_args(argv)

    try:
        if args.permissions:
            show_permissions(args.permissions, limit=args.limit)
            return 0

        if args.check_transition:
            actor, current, new = args.check_transition
            return check_transition(actor, current, new)

        if args.serve:
            from coach.api.server import run as run_server

            run_server(host=args.host, port=args.port)
            return 0

        parser.print_help()
        return 0

    except ValueError as e:
        # Invalid policy configuration
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
