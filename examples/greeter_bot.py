"""Greeter bot for the Highrise gateway.

Joins a room, greets every user that walks in, echoes chat messages that
start with ``!echo`` and keeps a live user list in memory.

    pip install highrise-client[fast]

    python examples/greeter_bot.py --token <API_TOKEN> --room <ROOM_ID>
"""

import argparse
import asyncio
import logging
import signal

from highrise_client import EventType, GatewayEvent, HighriseClient, MemoryRoomCache


async def main(token: str, room_id: str):
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    cache = MemoryRoomCache()
    client = HighriseClient(
        token,
        room_id,
        events=[EventType.CHAT, EventType.USER_JOINED, EventType.USER_LEFT],
        cache=cache,
    )

    @client.on(EventType.SESSION_METADATA)
    def on_session(event: GatewayEvent):
        print(f"Joined '{event.session.room_name}' as {event.session.user_id}")

    @client.on(EventType.USER_JOINED)
    async def on_join(event: GatewayEvent):
        username = event.payload.get("user", {}).get("username")
        await client.send_request("ChatRequest", {"message": f"Welcome, {username}!"})

    @client.on(EventType.CHAT)
    async def on_chat(event: GatewayEvent):
        message = event.payload.get("message", "")
        if message.startswith("!echo "):
            await client.send_request("ChatRequest", {"message": message[6:]})

    @client.on(EventType.USER_LEFT)
    def on_leave(event: GatewayEvent):
        print(f"{len(cache)} users in room")

    async with client:
        print("Listening for events... (Ctrl+C to stop)\n")
        await stop.wait()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Highrise greeter bot")
    parser.add_argument("--token", required=True, help="64-character bot API token")
    parser.add_argument("--room", required=True, help="24-character room id")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    asyncio.run(main(args.token, args.room))
