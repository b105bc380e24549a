#!/usr/bin/env python3
"""
Gift Registry - reserve gifts from a shared wish list.
Configuration, logging and the small command-line front end used to
initialise the database and inspect the registry.
"""

import argparse
import json
import logging
import os
import re
import sys
from typing import Dict, List, Optional

from colorama import init, Fore, Style
from dotenv import load_dotenv

# Initialize colorama for cross-platform colored terminal output
init(autoreset=True)

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

def setup_logging(level: str = 'WARNING') -> logging.Logger:
    """Configure the root registry logger.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               Defaults to WARNING so normal use is quiet.

    Returns:
        Configured logger instance.
    """
    numeric = getattr(logging, level.upper(), logging.WARNING)
    logger = logging.getLogger('gift_registry')
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('[%(levelname)s] %(name)s: %(message)s'))
        logger.addHandler(handler)
    logger.setLevel(numeric)
    return logger


logger = setup_logging()


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

DEFAULT_CONFIG: Dict[str, str] = {
    'admin_code': '',
    'resend_api_key': '',
    'resend_api_url': 'https://api.resend.com',
    'notify_from': 'Baby in Need <onboarding@resend.dev>',
    'recipients_to': '',
    'registry_name': 'Baby in Need',
    'database_url': 'sqlite:///gift_registry.db',
    'log_level': 'INFO',
}

# config key -> environment variable
ENV_OVERRIDES: Dict[str, str] = {
    'admin_code': 'ADMIN_CODE',
    'resend_api_key': 'RESEND_API_KEY',
    'resend_api_url': 'RESEND_API_URL',
    'notify_from': 'NOTIFY_FROM',
    'recipients_to': 'RECIPIENTS_TO',
    'registry_name': 'REGISTRY_NAME',
    'database_url': 'DATABASE_URL',
    'log_level': 'REGISTRY_LOG_LEVEL',
}


def load_config(config_path: str = 'config.json') -> Dict[str, str]:
    """Load configuration with environment variable support.

    Values are layered: built-in defaults, then ``config_path`` (if it exists
    and parses), then environment variables.  A ``.env`` file in the working
    directory is loaded first.

    Args:
        config_path: Optional JSON config file.

    Returns:
        A flat ``{key: value}`` dict covering every key in
        :data:`DEFAULT_CONFIG`.
    """
    load_dotenv()

    config = dict(DEFAULT_CONFIG)
    if config_path and os.path.exists(config_path):
        try:
            with open(config_path, 'r') as f:
                file_config = json.load(f)
            if isinstance(file_config, dict):
                config.update({k: str(v) for k, v in file_config.items() if v is not None})
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not load %s: %s", config_path, e)

    for key, env_var in ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value is not None:
            config[key] = value
    return config


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

_EMAIL_PATTERN = re.compile(r'.+@.+\..+')


def is_valid_email(value) -> bool:
    """Minimal address check: something, an ``@``, something, a dot, something."""
    if not value or not isinstance(value, str):
        return False
    return _EMAIL_PATTERN.fullmatch(value.strip()) is not None


def parse_email_list(raw: Optional[str]) -> List[str]:
    """Split a comma-separated address list, trimming and dropping blanks."""
    if not raw:
        return []
    return [part.strip() for part in str(raw).split(',') if part.strip()]


def normalize_email_list(raw: Optional[str]) -> str:
    """Return *raw* rejoined with a consistent ``", "`` separator.

    >>> normalize_email_list(' a@x.ch ,, b@y.ch ')
    'a@x.ch, b@y.ch'
    """
    return ', '.join(parse_email_list(raw))


# ---------------------------------------------------------------------------
# Command line
# ---------------------------------------------------------------------------

def _print_items(items: List[Dict]) -> None:
    if not items:
        print(f"{Fore.YELLOW}The registry is empty.")
        return
    for item in items:
        if item.get('claimed'):
            status = f"{Fore.RED}reserved{Style.RESET_ALL}"
        else:
            status = f"{Fore.GREEN}open{Style.RESET_ALL}"
        extras = ', '.join(
            str(item[k]) for k in ('price', 'size') if item.get(k)
        )
        line = f"  [{status}] {Fore.CYAN}{item['name']}{Style.RESET_ALL}"
        if extras:
            line += f" ({extras})"
        print(line)
        print(f"         id: {item['id']}")


def main(argv: Optional[List[str]] = None) -> int:
    """Command-line entry point."""
    parser = argparse.ArgumentParser(description='Gift Registry administration')
    parser.add_argument('--config', default='config.json', help='Path to config file')
    sub = parser.add_subparsers(dest='command')
    sub.add_parser('init-db', help='Create the database tables')
    sub.add_parser('list', help='List registry items')
    add = sub.add_parser('add', help='Add an item to the registry')
    add.add_argument('name')
    add.add_argument('--url')
    add.add_argument('--price')
    add.add_argument('--size')
    add.add_argument('--notes')
    args = parser.parse_args(argv)

    config = load_config(args.config)
    setup_logging(config.get('log_level', 'INFO'))

    import database
    database.configure(config['database_url'])

    if args.command == 'init-db':
        if database.init_db():
            print(f"{Fore.GREEN}Database tables created.")
            return 0
        print(f"{Fore.RED}Error: could not create database tables.")
        return 1

    if args.command == 'list':
        db = next(database.get_db())
        try:
            _print_items([database.item_to_dict(i) for i in database.list_items(db)])
        finally:
            db.close()
        return 0

    if args.command == 'add':
        from registry.errors import RegistryError
        from registry.services import ItemService
        db = next(database.get_db())
        try:
            item = ItemService(database).create(db, {
                'name': args.name, 'url': args.url, 'price': args.price,
                'size': args.size, 'notes': args.notes,
            })
        except RegistryError as e:
            print(f"{Fore.RED}Error: {e}")
            return 1
        finally:
            db.close()
        print(f"{Fore.GREEN}Added {item['name']} ({item['id']})")
        return 0

    parser.print_help()
    return 1


if __name__ == '__main__':
    sys.exit(main())
