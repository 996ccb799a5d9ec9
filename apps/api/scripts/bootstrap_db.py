"""Create database schema and seed demo users, a server and a DM for development."""
from __future__ import annotations

import asyncio

from sqlalchemy import insert, select

from chatserver.db.session import SessionLocal, engine
from chatserver.models.base import Base, utcnow
from chatserver.models.direct_message import DMConversation
from chatserver.models.server import Channel, ChannelKind, Server, server_members
from chatserver.models.user import User, UserStatus
from chatserver.repositories import dms as dms_repo

USERS = [
	{"id": "user-ava", "username": "ava", "email": "ava@example.com", "avatar": "🦊"},
	{"id": "user-daniel", "username": "daniel", "email": "daniel@example.com", "avatar": "🐼"},
	{"id": "user-sofia", "username": "sofia", "email": "sofia@example.com", "avatar": "🐙"},
]

SERVERS = [
	{
		"id": "server-lobby",
		"name": "Lobby",
		"icon": "🏠",
		"owner_id": "user-ava",
		"members": ["user-ava", "user-daniel", "user-sofia"],
		"channels": [
			{"id": "channel-general", "name": "general", "kind": ChannelKind.TEXT},
			{"id": "channel-voice", "name": "voice", "kind": ChannelKind.VOICE},
		],
	},
]

DMS = [("user-ava", "user-daniel")]


async def create_schema() -> None:
	"""Create the database schema if it does not already exist."""

	async with engine.begin() as conn:
		await conn.run_sync(Base.metadata.create_all)


async def seed_users() -> None:
	"""Insert or update demo users."""

	async with SessionLocal() as session:
		async with session.begin():
			for user_data in USERS:
				user = await session.get(User, user_data["id"])
				if user is None:
					session.add(
						User(
							id=user_data["id"],
							username=user_data["username"],
							email=user_data["email"],
							avatar=user_data["avatar"],
							status=UserStatus.ONLINE,
							created_at=utcnow(),
						)
					)
				else:
					user.username = user_data["username"]
					user.email = user_data["email"]
					user.avatar = user_data["avatar"]


async def seed_servers() -> None:
	"""Insert demo servers with their channels and members."""

	async with SessionLocal() as session:
		async with session.begin():
			for server_data in SERVERS:
				server = await session.get(Server, server_data["id"])
				if server is None:
					server = Server(
						id=server_data["id"],
						name=server_data["name"],
						icon=server_data["icon"],
						owner_id=server_data["owner_id"],
						created_at=utcnow(),
					)
					session.add(server)
				else:
					server.name = server_data["name"]
					server.icon = server_data["icon"]

				for channel_data in server_data["channels"]:
					if await session.get(Channel, channel_data["id"]) is None:
						session.add(
							Channel(
								id=channel_data["id"],
								server_id=server_data["id"],
								name=channel_data["name"],
								kind=channel_data["kind"],
							)
						)
				await session.flush()

				existing = set(
					(
						await session.execute(
							select(server_members.c.user_id).where(server_members.c.server_id == server_data["id"])
						)
					).scalars()
				)
				rows = [
					{"server_id": server_data["id"], "user_id": user_id}
					for user_id in server_data["members"]
					if user_id not in existing
				]
				if rows:
					await session.execute(insert(server_members), rows)


async def seed_dms() -> None:
	"""Insert demo DM conversations."""

	async with SessionLocal() as session:
		async with session.begin():
			for user_a, user_b in DMS:
				if await dms_repo.get_by_pair(session, user_a, user_b) is None:
					low, high = dms_repo.ordered_pair(user_a, user_b)
					session.add(DMConversation(user_low_id=low, user_high_id=high, created_at=utcnow()))


async def main() -> None:
	await create_schema()
	await seed_users()
	await seed_servers()
	await seed_dms()
	await engine.dispose()
	print("Database schema ensured and demo data seeded.")


if __name__ == "__main__":
	asyncio.run(main())
