#!/usr/bin/env python3
"""
Setup Verification Script

Validates configuration and the backend connection before running the
application, then previews the scheduling settings and the slots the
chatbot would offer.

Usage:
    python scripts/verify_setup.py
"""

import asyncio
import os
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Load environment variables
from dotenv import load_dotenv
load_dotenv()


def print_header(title: str) -> None:
    """Print section header."""
    print(f"\n{'='*60}")
    print(f" {title}")
    print(f"{'='*60}")


def print_result(name: str, success: bool, message: str = "") -> None:
    """Print check result."""
    status = "[PASS]" if success else "[FAIL]"
    color = "\033[92m" if success else "\033[91m"
    reset = "\033[0m"
    msg = f" - {message}" if message else ""
    print(f"  {color}{status}{reset} {name}{msg}")


def check_env_file() -> bool:
    """Check if .env file exists."""
    env_path = project_root / ".env"
    exists = env_path.exists()
    if not exists:
        print_result(".env file", False, "File not found (environment variables only)")
    else:
        print_result(".env file", True, "Found")
    return exists


def check_vars() -> None:
    """Show configuration variables with their effective values."""
    variables = [
        ("BACKEND_API_URL", "http://localhost:3001"),
        ("BACKEND_API_KEY", ""),
        ("BACKEND_TIMEOUT", "10"),
        ("SETTINGS_CACHE_TTL", "60"),
        ("SLOT_OFFER_LIMIT", "5"),
        ("APP_ENV", "development"),
        ("DEBUG", "false"),
        ("PORT", "8000"),
    ]

    for var, default in variables:
        value = os.getenv(var, default)

        if "KEY" in var:
            if not value:
                print_result(var, True, "Not set (requests sent without a token)")
                continue
            value = f"{value[:4]}...{value[-4:]}" if len(value) > 12 else "***"

        print_result(var, True, value)


def check_dependencies() -> bool:
    """Check if required Python packages are installed."""
    required_packages = [
        "fastapi",
        "uvicorn",
        "pydantic",
        "pydantic_settings",
        "httpx",
        "tzdata",
    ]

    missing = []
    for package in required_packages:
        try:
            __import__(package)
        except ImportError:
            missing.append(package)

    if missing:
        print_result("Python packages", False, f"Missing: {', '.join(missing)}")
        return False
    else:
        print_result("Python packages", True, "All required packages installed")
        return True


async def check_backend() -> bool:
    """Verify the backend scheduling settings endpoint."""
    from booking_flow.config import settings
    from booking_flow.infra.backend import check_backend_health, close_backend_client

    try:
        healthy = await check_backend_health()
    finally:
        await close_backend_client()

    if healthy:
        print_result("Backend", True, f"Reachable at {settings.backend_api_url}")
    else:
        print_result("Backend", False, f"Not reachable at {settings.backend_api_url}")
    return healthy


async def preview_booking() -> None:
    """Print normalized scheduling settings and a slot preview."""
    from booking_flow.core.scheduling import AvailabilityService, get_settings_provider
    from booking_flow.infra.backend import close_backend_client, get_backend_client

    try:
        scheduling = await get_settings_provider().get()
        slots = await AvailabilityService(client=get_backend_client()).find_slots(
            scheduling, limit=3
        )
    finally:
        await close_backend_client()

    print_result(
        "Scheduling",
        scheduling.enabled,
        "enabled" if scheduling.enabled else "disabled (flow stays silent)",
    )
    print_result(
        "Chatbot booking",
        scheduling.chatbot_offer_booking,
        f"mode={scheduling.booking_mode.value}, type={scheduling.default_booking_type}",
    )
    print_result("Timezone", True, scheduling.timezone)

    enabled_days = [d.day for d in scheduling.working_hours if d.enabled and d.ranges]
    print_result(
        "Working hours",
        bool(enabled_days),
        ", ".join(enabled_days) if enabled_days else "no working day configured",
    )

    if slots:
        for slot in slots:
            print_result("Slot", True, slot.label or slot.start)
    else:
        print_result("Slots", False, "None available in the booking window")


async def main():
    """Run all verification checks."""
    print("\n" + "="*60)
    print(" Booking Flow - Setup Verification")
    print("="*60)

    print_header("Environment File")
    check_env_file()  # Non-critical

    print_header("Python Dependencies")
    if not check_dependencies():
        print("\n  \033[91mCRITICAL: Install the project first:\033[0m")
        print("    pip install -e .")
        print()
        return 1

    print_header("Configuration")
    check_vars()

    print_header("Service Connections")
    backend_ok = await check_backend()

    print_header("Booking Preview")
    await preview_booking()

    print_header("Summary")

    if not backend_ok:
        print("\n  \033[93mWARNING: Backend unreachable.\033[0m")
        print("  The booking flow will use default settings and synthesized slots.")
        print()
    else:
        print("\n  \033[92mAll checks passed!\033[0m")
        print("  You can start the application with:")
        print("    uvicorn booking_flow.main:app --reload")
        print()
    return 0


if __name__ == "__main__":
    exit_code = asyncio.run(main())
    sys.exit(exit_code)
