from ipyjob.cli.main import cli

cli(prog_name="ipyjob")
