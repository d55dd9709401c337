from __future__ import annotations

import getpass
import logging
import os
import stat
import sys
from importlib.resources import files
from pathlib import Path

USAGE = """\
usage: payne                 launch the dashboard
       payne init            create config files and store secrets
       payne pay INV-0001    open the payment page for an invoice
       payne currency EUR    set the display currency for this session"""


def _check_keyring_available() -> bool:
    """Check if keyring is installed with a usable backend."""
    try:
        import keyring
        from keyring.backends.fail import Keyring as FailKeyring

        return not isinstance(keyring.get_keyring(), FailKeyring)
    except Exception:
        return False


def _upsert_env_var(env_file: Path, key: str, value: str) -> None:
    """Set or update a key=value pair in a .env file, creating it if needed."""
    from dotenv import set_key

    env_file.parent.mkdir(parents=True, exist_ok=True)
    if not env_file.exists():
        env_file.touch()
    set_key(str(env_file), key, value)


def _remove_env_var(env_file: Path, key: str) -> None:
    """Remove a key from a .env file if present."""
    from dotenv import unset_key

    if env_file.exists():
        unset_key(str(env_file), key)


def _warn_open_permissions(env_file: Path) -> None:
    """Warn if .env file has group/other read permissions (Unix only)."""
    try:
        mode = env_file.stat().st_mode
        if mode & (stat.S_IRGRP | stat.S_IROTH):
            print(f"\n  WARNING: {env_file} is readable by other users.")
            print("  Recommended: chmod 600", env_file)
    except OSError:
        pass


def _store_secret(env_file: Path, env_var: str, keyring_username: str, secret: str) -> None:
    """Ask where to keep *secret*: OS keyring, the config .env, or nowhere."""
    from payne.config import _delete_keyring_secret, _set_keyring_secret

    print()
    print("Where should it be stored?")

    keyring_ok = _check_keyring_available()
    options: list[tuple[str, str]] = []
    if keyring_ok:
        options.append(("1", "System keychain (recommended)"))
    options.append(("2", ".env file in the config directory"))
    options.append(("3", "Don't store it (set it yourself)"))

    for num, label in options:
        print(f"  {num}. {label}")

    if not keyring_ok:
        print()
        print("  Note: system keychain unavailable (no backend configured).")

    print()
    valid_choices = {num for num, _ in options}
    choice = ""
    while choice not in valid_choices:
        choice = input(f"Choice [{'/'.join(sorted(valid_choices))}]: ").strip()

    if choice == "1" and keyring_ok:
        if _set_keyring_secret(keyring_username, secret):
            print("  Stored in the system keychain.")
            # Remove from .env to avoid a stale secret on disk
            _remove_env_var(env_file, env_var)
        else:
            print("  ERROR: keychain write failed. Saving to .env instead.")
            _upsert_env_var(env_file, env_var, secret)
            _warn_open_permissions(env_file)
    elif choice == "2":
        _upsert_env_var(env_file, env_var, secret)
        print(f"  Saved to {env_file}")
        _warn_open_permissions(env_file)
        _delete_keyring_secret(keyring_username)
    else:
        _remove_env_var(env_file, env_var)
        _delete_keyring_secret(keyring_username)
        print("  Not stored.")
        print(f"  Set {env_var} in your shell or .env before running payne.")


def _setup_api_key(config_dir: Path) -> bool:
    """Interactive exchange-rate API key setup. Returns True if a key was stored."""
    from payne.config import KEYRING_API_KEY

    print()
    print("Exchange rate API key")
    print("─────────────────────")
    print()
    api_key = getpass.getpass("exchangerate-api.com key (empty to skip): ").strip()
    if not api_key:
        print("  Skipped. Invoices can still be created in USDC.")
        return False
    _store_secret(config_dir / ".env", "EXCHANGE_RATE_API_KEY", KEYRING_API_KEY, api_key)
    return True


def _setup_payer_key(config_dir: Path) -> bool:
    """Interactive payer wallet setup. Returns True if a key was stored."""
    from payne.config import KEYRING_PAYER_KEY

    print()
    print("Payer wallet")
    print("────────────")
    print()

    while True:
        private_key = getpass.getpass("Private key, 0x-prefixed (empty to skip): ").strip()
        if not private_key:
            print("  Skipped. Payments need PAYER_PRIVATE_KEY.")
            return False
        try:
            from eth_account import Account

            address = Account.from_key(private_key).address
            break
        except Exception as e:
            print(f"  Invalid private key - {e}")

    print(f"  Account: {address}")
    _store_secret(config_dir / ".env", "PAYER_PRIVATE_KEY", KEYRING_PAYER_KEY, private_key)

    env_file = config_dir / ".env"
    rpc_url = input("RPC URL (empty to keep current): ").strip()
    if rpc_url:
        _upsert_env_var(env_file, "RPC_URL", rpc_url)
    usdc_address = input("USDC contract address (empty to keep current): ").strip()
    if usdc_address:
        from payne.utils.validators import validate_address

        try:
            _upsert_env_var(env_file, "USDC_ADDRESS", validate_address(usdc_address))
        except ValueError as e:
            print(f"  {e}; not saved.")
    return True


def _init_config() -> None:
    """Copy bundled config templates to the user's config/data directories."""
    from payne.config import get_config_dir, get_data_dir

    config_dir = get_config_dir()
    data_dir = get_data_dir()
    templates = files("payne") / "templates"

    config_dir.mkdir(parents=True, exist_ok=True)
    data_dir.mkdir(parents=True, exist_ok=True)

    copied = 0
    dest = config_dir / "merchant.yaml.example"
    if dest.exists():
        print(f"  already exists: {dest}")
    else:
        with (templates / "merchant.yaml.example").open("rb") as f:
            dest.write_bytes(f.read())
        print(f"  created: {dest}")
        copied += 1

    print()
    print(f"Config: {config_dir}")
    print(f"Data:   {data_dir}")

    print()
    secrets_configured = False
    try:
        answer = input("Configure API key and payer wallet now? [Y/n]: ").strip().lower()
        if answer in ("", "y", "yes"):
            api_ok = _setup_api_key(config_dir)
            payer_ok = _setup_payer_key(config_dir)
            secrets_configured = api_ok and payer_ok
    except (EOFError, KeyboardInterrupt):
        print()

    print()
    if copied:
        print("Next steps:")
        print(f"  1. cp {config_dir / 'merchant.yaml.example'} {config_dir / 'merchant.yaml'}")
        print("  2. Edit merchant.yaml with your name and receiving wallet address")
        if not secrets_configured:
            print("  3. Set EXCHANGE_RATE_API_KEY, PAYER_PRIVATE_KEY, RPC_URL and USDC_ADDRESS")
            print("  4. Run: payne")
        else:
            print("  3. Run: payne")
    else:
        print("No new files created (all already existed).")


def _preflight() -> bool:
    """Verify minimal config before launching the TUI.

    Auto-creates the data directory. Returns False with a helpful
    message when the config directory or merchant.yaml is missing.
    """
    from payne.config import get_config_dir, get_data_dir

    data_dir = get_data_dir()
    data_dir.mkdir(parents=True, exist_ok=True)

    config_dir = get_config_dir()
    if not config_dir.is_dir():
        print(f"Error: config directory not found: {config_dir}")
        print("Run 'payne init' to create the example files.")
        return False
    if not (config_dir / "merchant.yaml").is_file():
        print(f"Error: merchant.yaml not found in {config_dir}")
        print("Run 'payne init' and set up your merchant profile.")
        return False
    return True


def _setup_logging() -> Path:
    """Send log records to payne.log in the data dir; the TUI owns the terminal."""
    from payne.config import get_data_dir

    log_file = get_data_dir() / "payne.log"
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=log_file,
        level=os.environ.get("PAYNE_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return log_file


def _set_currency(code: str) -> None:
    from payne.services.preferences import set_currency
    from payne.utils.session import SessionCache

    try:
        currency = set_currency(SessionCache(), code)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)
    print(f"Display currency set to {currency.label}")


def main() -> None:
    """Entry point for the Payne CLI/TUI."""
    args = sys.argv[1:]
    pay_invoice = None

    match args:
        case ["init"]:
            _init_config()
            return
        case ["currency", code]:
            _set_currency(code)
            return
        case ["pay", number]:
            from payne.utils.validators import validate_invoice_number

            try:
                pay_invoice = validate_invoice_number(number)
            except ValueError as e:
                print(f"Error: {e}")
                sys.exit(2)
        case ["-h" | "--help" | "help"]:
            print(USAGE)
            return
        case []:
            pass
        case _:
            print(USAGE)
            sys.exit(2)

    if not _preflight():
        sys.exit(1)
    _setup_logging()

    from payne.tui.app import PayneApp

    app = PayneApp(pay_invoice=pay_invoice)
    app.run()


if __name__ == "__main__":
    main()
