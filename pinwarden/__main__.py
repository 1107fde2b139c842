from pinwarden.cli import cli

cli()
