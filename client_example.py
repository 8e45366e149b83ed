"""
WebSocket Chat Client Example
Terminal client for the room chat relay, with a scripted demo scenario
"""

import asyncio
import json
import websockets
import time
from datetime import datetime
from typing import Any, Dict, Iterable, Optional, Set
import argparse
import sys

SYSTEM_USERNAME = "Server"


def frame(event: str, data: Any = None) -> str:
    """Encode one client -> server frame"""
    payload: Dict[str, Any] = {"type": event}
    if data is not None:
        payload["data"] = data
    return json.dumps(payload)


def format_message(message: Dict[str, Any]) -> str:
    """Render one ``message`` payload as a terminal line"""
    sender = message.get("username", "unknown")
    text = message.get("text", "")
    created_at = message.get("createdAt")
    stamp = ""
    if created_at:
        try:
            stamp = datetime.fromisoformat(created_at).astimezone().strftime('%H:%M:%S')
        except ValueError:
            stamp = "--:--:--"
    if sender == SYSTEM_USERNAME:
        return f"[{stamp}] * {text}"
    return f"[{stamp}] {sender}: {text}"


def typing_text(users: Iterable[str]) -> str:
    """Human-friendly typing indicator line"""
    names = sorted(users)
    if not names:
        return ""
    if len(names) == 1:
        return f"{names[0]} is typing…"
    if len(names) == 2:
        return f"{names[0]} and {names[1]} are typing…"
    return f"{names[0]}, {names[1]} and {len(names) - 2} others are typing…"


class ChatClient:
    """Relay client that tracks the roster and who is typing"""

    def __init__(self, username: str, room: str, server_url: str = "ws://localhost:8000/ws"):
        self.username = username
        self.room = room
        self.server_url = server_url
        self.websocket = None
        self.users: list = []
        self.typing_users: Set[str] = set()
        self.running = False

    def apply_event(self, data: Dict[str, Any]) -> Optional[str]:
        """
        Update local state from a server frame

        Returns:
            Line to print, or None if nothing needs printing
        """
        event = data.get("type")
        payload = data.get("data")

        if event == "messageHistory":
            lines = [format_message(m) for m in payload or []]
            return "\n".join(lines) if lines else None

        if event == "message":
            return format_message(payload or {})

        if event == "roomUsers":
            self.users = [u.get("username") for u in (payload or {}).get("users", [])]
            return f"👥 In {self.room}: {', '.join(self.users)}"

        if event == "typing":
            who = (payload or {}).get("username")
            if who and who != self.username:
                self.typing_users.add(who)
            return typing_text(self.typing_users) or None

        if event == "stopTyping":
            self.typing_users.discard((payload or {}).get("username"))
            return typing_text(self.typing_users) or None

        return f"❓ Unknown event: {event}"

    async def connect(self) -> bool:
        """Connect to the relay"""
        try:
            self.websocket = await websockets.connect(self.server_url)
            print(f"✅ Connected to {self.server_url}")
            return True
        except Exception as e:
            print(f"❌ Connection failed: {e}")
            return False

    async def join_room(self) -> bool:
        """Join the room; history arrives first on success"""
        if not self.websocket:
            return False

        await self.websocket.send(frame("joinRoom", {"username": self.username, "room": self.room}))
        print(f"📤 Sent join request: {self.username} -> {self.room}")

        data = json.loads(await self.websocket.recv())
        line = self.apply_event(data)
        if line:
            print(line)
        if data.get("type") == "messageHistory":
            return True
        print("❌ Join failed")
        return False

    async def send_message(self, text: str):
        await self.websocket.send(frame("chat-message", text))

    async def start_typing(self):
        await self.websocket.send(frame("typing"))

    async def stop_typing(self):
        await self.websocket.send(frame("stopTyping"))

    async def listen_for_messages(self):
        """Print incoming events until stopped"""
        while self.running:
            try:
                message = await asyncio.wait_for(self.websocket.recv(), timeout=1.0)
            except asyncio.TimeoutError:
                continue
            except websockets.exceptions.ConnectionClosed:
                print("🔌 Connection closed by server")
                break

            line = self.apply_event(json.loads(message))
            if line:
                print(line)

    async def disconnect(self):
        """Disconnect from server"""
        self.running = False
        if self.websocket:
            try:
                await self.websocket.close()
                print("🔌 Disconnected from server")
            except Exception as e:
                print(f"❌ Close failed: {e}")

    async def run_interactive(self):
        """Run interactive chat session"""
        if not await self.connect():
            return

        if not await self.join_room():
            await self.disconnect()
            return

        self.running = True
        listen_task = asyncio.create_task(self.listen_for_messages())
        loop = asyncio.get_running_loop()

        try:
            print("\n🎮 Interactive mode started!")
            print("Commands: /quit, or just type your message")
            print("-" * 50)

            while self.running:
                try:
                    user_input = (await loop.run_in_executor(None, input, f"{self.username}> ")).strip()
                except (KeyboardInterrupt, EOFError):
                    break

                if not user_input:
                    continue
                if user_input == "/quit":
                    break

                await self.start_typing()
                await self.send_message(user_input)

        finally:
            self.running = False
            listen_task.cancel()
            await self.disconnect()


async def demo_scenario(server_url: str):
    """Ann and Bob meet in room X"""
    print("\n🧪 Demo: two users, one room")
    print("=" * 60)

    async def ann():
        client = ChatClient("Ann", "X", server_url)
        if await client.connect() and await client.join_room():
            client.running = True
            listen_task = asyncio.create_task(client.listen_for_messages())
            await asyncio.sleep(3)
            client.running = False
            listen_task.cancel()
            await client.disconnect()

    async def bob():
        await asyncio.sleep(0.5)
        client = ChatClient("Bob", "X", server_url)
        if await client.connect() and await client.join_room():
            client.running = True
            listen_task = asyncio.create_task(client.listen_for_messages())
            await asyncio.sleep(0.5)
            await client.start_typing()
            await asyncio.sleep(0.5)
            await client.send_message("hi")
            await asyncio.sleep(3)
            client.running = False
            listen_task.cancel()
            await client.disconnect()

    started = time.time()
    await asyncio.gather(ann(), bob())
    print(f"✅ Demo completed in {time.time() - started:.1f}s")


async def main():
    """Main function with command line interface"""
    parser = argparse.ArgumentParser(description="Room Chat Relay Client")
    parser.add_argument("--username", default="testuser", help="Username")
    parser.add_argument("--room", default="general", help="Chat room")
    parser.add_argument("--server", default="ws://localhost:8000/ws", help="Server URL")
    parser.add_argument("--demo", action="store_true", help="Run the two-user demo")

    args = parser.parse_args()

    if args.demo:
        await demo_scenario(args.server)
    else:
        client = ChatClient(args.username, args.room, args.server)
        await client.run_interactive()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\n👋 Goodbye!")
    except Exception as e:
        print(f"❌ Client error: {e}")
        sys.exit(1)
