import secrets


def main() -> None:
    print("CRON_SECRET:", secrets.token_urlsafe(32))


if __name__ == "__main__":
    main()
