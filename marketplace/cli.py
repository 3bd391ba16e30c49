"""
Command line shell for the marketplace screens.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Optional, Sequence

from marketplace.alerts import ConsoleAlertSink
from marketplace.db import ProductRecord
from marketplace.dependencies import Backend, get_backend
from marketplace.screens import (
    ChatScreen,
    InboxScreen,
    LoginScreen,
    MarketplaceScreen,
    MyProfileScreen,
    ProductDetailScreen,
    RegisterScreen,
    SearchScreen,
    SellerProfileScreen,
    SellProductScreen,
)
from marketplace.session import AuthStateObserver
from marketplace.storage import LocalFile
from marketplace.types import ALL_CATEGORIES, CATEGORIES, ProductCondition

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Campus marketplace client")
    parser.add_argument(
        "--email",
        default=os.environ.get("MARKETPLACE_EMAIL"),
        help="Account email (defaults to MARKETPLACE_EMAIL)",
    )
    parser.add_argument(
        "--password",
        default=os.environ.get("MARKETPLACE_PASSWORD"),
        help="Account password (defaults to MARKETPLACE_PASSWORD)",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    register = sub.add_parser("register", help="Create an account")
    register.add_argument("--full-name", required=True)
    register.add_argument("--student-id", required=True)
    register.add_argument("--confirm-password", required=True)
    register.add_argument("--cor", required=True, help="Path to the COR PDF")

    products = sub.add_parser("products", help="Browse products by category")
    products.add_argument(
        "-c", "--category", default=ALL_CATEGORIES, choices=CATEGORIES
    )

    search = sub.add_parser("search", help="Search products by name")
    search.add_argument("query")

    show = sub.add_parser("show", help="Show one product")
    show.add_argument("product_id", type=int)

    sell = sub.add_parser("sell", help="List a product for sale")
    sell.add_argument("--name", required=True)
    sell.add_argument("--description", default="")
    sell.add_argument("--price", required=True)
    sell.add_argument("--category", required=True, choices=CATEGORIES[1:])
    sell.add_argument(
        "--condition",
        default=ProductCondition.NEW.value,
        choices=[c.value for c in ProductCondition],
    )
    sell.add_argument(
        "--photo", action="append", default=[], help="Photo path (repeatable)"
    )

    profile = sub.add_parser("profile", help="Show your profile or a seller's")
    profile.add_argument("--user-id", help="Seller to show instead of yourself")

    delete = sub.add_parser("delete-product", help="Delete one of your products")
    delete.add_argument("product_id", type=int)

    sub.add_parser("inbox", help="List your conversations")

    chat = sub.add_parser("chat", help="Chat about a product")
    chat.add_argument("product_id", type=int)
    chat.add_argument("--peer", help="Buyer to reply to when you are the seller")
    return parser


def _print_products(products: Sequence[ProductRecord]) -> None:
    if not products:
        print("No products found.")
        return
    for product in products:
        print(
            f"#{product.id:<5} {product.product_name:<40} "
            f"{product.price:>10.2f}  {product.category}"
        )


def _login(args, backend: Backend, session: AuthStateObserver, alerts) -> bool:
    if not args.email or not args.password:
        alerts.show("Login Failed", "Email and password are required.")
        return False
    return LoginScreen(backend, session, alerts).login(args.email, args.password)


def _run_chat(chat: ChatScreen, stdin) -> None:
    with chat:
        print(f"{chat.product.product_name if chat.product else ''} "
              f"(seller: {chat.seller_name})")
        for message in chat.messages:
            print(f"{chat.display_name(message)}: {message.content}")
        seen = len(chat.messages)
        for line in stdin:
            chat.input = line.rstrip("\n")
            chat.send()
            for message in chat.messages[seen:]:
                if not chat.is_own(message):
                    print(f"{chat.display_name(message)}: {message.content}")
            seen = len(chat.messages)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    backend = get_backend()
    alerts = ConsoleAlertSink()
    with AuthStateObserver(backend.auth) as session:
        if args.command == "register":
            screen = RegisterScreen(backend, session, alerts)
            screen.select_cor(LocalFile.from_path(args.cor))
            user = screen.sign_up(
                args.full_name,
                args.email or "",
                args.student_id,
                args.password or "",
                args.confirm_password,
            )
            return 0 if user else 1

        if args.command == "products":
            screen = MarketplaceScreen(backend, session, alerts)
            _print_products(screen.select_category(args.category))
            return 0

        if args.command == "search":
            _print_products(SearchScreen(backend, session, alerts).search(args.query))
            return 0

        if args.command == "show":
            screen = ProductDetailScreen(backend, session, alerts)
            product = screen.load(args.product_id)
            if product is None:
                return 1
            print(f"{product.product_name} - {product.price:.2f}")
            print(f"Condition: {product.product_cond}  Category: {product.category}")
            print(product.product_descrip or "")
            if screen.seller:
                print(f"Seller: {screen.seller.full_name}")
            return 0

        if args.command == "profile" and args.user_id:
            screen = SellerProfileScreen(backend, session, alerts)
            user = screen.load(args.user_id)
            if user is None:
                return 1
            print(f"{user.full_name}\n{user.bio or ''}")
            _print_products(screen.listings)
            return 0

        if not _login(args, backend, session, alerts):
            return 1

        if args.command == "sell":
            screen = SellProductScreen(backend, session, alerts)
            for path in args.photo:
                screen.add_photo(LocalFile.from_path(path))
            product = screen.submit(
                args.name, args.description, args.price, args.category, args.condition
            )
            if product is None:
                return 1
            print(f"Listed product #{product.id}")
            return 0

        if args.command == "profile":
            screen = MyProfileScreen(backend, session, alerts)
            user = screen.load()
            if user is None:
                return 1
            print(f"{user.full_name} <{user.email}>\n{user.bio or ''}")
            _print_products(screen.listings)
            return 0

        if args.command == "delete-product":
            screen = MyProfileScreen(backend, session, alerts)
            screen.load()
            return 0 if screen.delete_product(args.product_id) else 1

        if args.command == "inbox":
            screen = InboxScreen(backend, session, alerts)
            for conversation in screen.load():
                latest = conversation.latest
                who = latest.buyer_name if latest else ""
                print(
                    f"#{conversation.product_id:<5} "
                    f"{conversation.product_name or '':<30} {who}: {conversation.preview}"
                )
            return 0

        if args.command == "chat":
            chat = ChatScreen(
                backend,
                session,
                alerts,
                product_id=args.product_id,
                peer_id=args.peer,
            )
            _run_chat(chat, sys.stdin)
            return 0

    return 1


if __name__ == "__main__":
    sys.exit(main())
