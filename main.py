from ui.cli import cli


def main():
    cli(prog_name="recurring-ledger")


if __name__ == "__main__":
    main()
