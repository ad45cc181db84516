import asyncio
import sys
from pathlib import Path

# Add src to path for development
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from polychat import Polychat  # noqa: E402
from polychat.models.availability import RefreshMode  # noqa: E402
from polychat.services.chat_session import NoticeLevel  # noqa: E402


def show_notice(level: NoticeLevel, text: str) -> None:
    print(f"[{level}] {text}")


# Config loaded from .env automatically
async def main() -> None:
    async with Polychat(on_notice=show_notice) as chat:
        state = chat.availability.state
        print(f"{len(state.available_models)} models, using {state.current_model}")

        while True:
            line = (await asyncio.to_thread(input, "> ")).strip()
            if line in ("/quit", "/exit"):
                break
            if line == "/models":
                for option in state.available_models:
                    mark = "*" if option.id == state.current_model else " "
                    usable = "" if state.is_available(option.id) else " (unavailable)"
                    print(f"{mark} {option.id} [{option.provider}]{usable}")
                continue
            if line.startswith("/use "):
                await chat.session.select_model(line.removeprefix("/use ").strip())
                continue
            if line == "/refresh":
                summary = await chat.session.refresh(RefreshMode.FULL)
                print(f"verified {summary.verified} of {summary.total}")
                continue
            if line == "/clear":
                await chat.session.clear_chat()
                continue

            if await chat.session.send_message(line):
                reply = chat.session.messages[-1:]
                if reply:
                    print(reply[0].content)


if __name__ == "__main__":
    asyncio.run(main())
