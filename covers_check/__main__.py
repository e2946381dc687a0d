from covers_check.cli import cli

cli(prog_name="covers-check")
