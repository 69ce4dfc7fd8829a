from tickerdeck.cli.main import app

app(prog_name="tickerdeck")
