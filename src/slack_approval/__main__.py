from slack_approval.cli import cli

cli()
