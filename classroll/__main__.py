"""
Classroll diagnostics

Checks the remote store and prints what it holds.

Usage:
    python3 -m classroll health
    python3 -m classroll groups
    python3 -m classroll students [--group NAME | --without-group]
    python3 -m classroll schedules [--group NAME]
    python3 -m classroll stats GROUP

The server address and timeouts come from a .env file or the environment:
    CLASSROLL_BASE_URL=http://localhost:8080/api
    CLASSROLL_REQUEST_TIMEOUT=30
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from .api.client import ClassrollClient
from .api.exceptions import ClassrollError
from .config import Settings, load_settings


def build_parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(prog="classroll", description="Classroll server diagnostics")
	parser.add_argument("--env-file", help="Path to a .env file")
	parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
	commands = parser.add_subparsers(dest="command", required=True)

	commands.add_parser("health", help="Check whether the server is reachable")
	commands.add_parser("groups", help="List groups")

	students = commands.add_parser("students", help="List students")
	scope = students.add_mutually_exclusive_group()
	scope.add_argument("--group", help="Only students of this group")
	scope.add_argument("--without-group", action="store_true", help="Only unassigned students")

	schedules = commands.add_parser("schedules", help="List class schedules")
	schedules.add_argument("--group", help="Only schedules of this group")

	stats = commands.add_parser("stats", help="Show attendance statistics of a group")
	stats.add_argument("group")
	return parser


async def run(args: argparse.Namespace, settings: Settings) -> bool:
	"""Run one command; returns False when the server check failed."""
	async with ClassrollClient(settings=settings) as client:
		if args.command == "health":
			healthy = await client.groups.async_check_health()
			print(f"{'✅' if healthy else '❌'} Server at {settings.base_url} is {'reachable' if healthy else 'unreachable'}")
			return healthy

		if args.command == "groups":
			groups = await client.groups.async_list()
			print(f"📚 {len(groups)} groups")
			for group in groups:
				print(f"   {group} - created {group.formatted_date}")

		elif args.command == "students":
			if args.group:
				students = await client.students.async_list_by_group(args.group)
			elif args.without_group:
				students = await client.students.async_list_without_group()
			else:
				students = await client.students.async_list()
			print(f"👥 {len(students)} students")
			for student in students:
				print(f"   {student}")

		elif args.command == "schedules":
			if args.group:
				schedules = await client.schedules.async_list_by_group(args.group)
			else:
				schedules = await client.schedules.async_list()
			print(f"📅 {len(schedules)} schedules")
			for schedule in schedules:
				print(f"   [{schedule.id}] {schedule} ({schedule.group_name})")

		elif args.command == "stats":
			stats = await client.attendance.async_group_stats(args.group)
			print(f"📊 Attendance statistics for {args.group}")
			print(json.dumps(stats, indent=2, ensure_ascii=False))

	return True


def main(argv: Optional[List[str]] = None) -> int:
	args = build_parser().parse_args(argv)
	logging.basicConfig(
		level=logging.DEBUG if args.verbose else logging.WARNING,
		format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
	)

	try:
		settings = load_settings(args.env_file)
		return 0 if asyncio.run(run(args, settings)) else 1
	except ClassrollError as e:
		print(f"❌ {e}")
		return 1
	except KeyboardInterrupt:
		print("\n⚠️ Interrupted by user.")
		return 1


if __name__ == "__main__":
	sys.exit(main())
