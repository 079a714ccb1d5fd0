from mediacompose.main import cli

cli()
