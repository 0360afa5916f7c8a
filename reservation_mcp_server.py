from __future__ import annotations

from pathlib import Path
from typing import Any

from mcp.server.fastmcp import FastMCP

from reservation_engine import ReservationError, create_engine

mcp = FastMCP(
    "Reservation MCP Server",
    instructions="Submit and list priority room reservations through the reservation_engine project.",
    json_response=True,
)

DATA_DIR = Path(__file__).parent / "data"
ENGINE = create_engine(data_dir=DATA_DIR)


@mcp.resource("reservation://rooms")
async def list_rooms() -> list[dict[str, Any]]:
    """List bookable rooms with the roles allowed to reserve them."""
    return [policy.to_dict() for policy in ENGINE.policies.list_policies()]


@mcp.tool()
def login(email: str, role: str) -> dict[str, Any]:
    """Register or refresh a user and return its id for later reservations."""
    return ENGINE.users.login(email, role).to_dict()


@mcp.tool()
def list_reservations(role: str | None = None) -> list[dict[str, Any]]:
    """Return live reservations ordered by start time, optionally limited to rooms a role may book."""
    return [item.to_dict() for item in ENGINE.list_reservations(role=role)]


@mcp.tool()
def submit_reservation(
    owner_id: str,
    room_name: str,
    start_iso: str,
    end_iso: str,
    priority_level: int | None = None,
    title: str = "MCP reservation",
) -> dict[str, Any]:
    """Request a room; higher-priority requests evict lower-priority overlapping bookings."""
    try:
        booked = ENGINE.submit_reservation(
            {
                "owner_id": owner_id,
                "room_name": room_name,
                "start_time": start_iso,
                "end_time": end_iso,
                "priority_level": priority_level,
                "type": title,
            }
        )
    except ReservationError as error:
        return error.to_dict()
    return booked.to_dict()


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()
