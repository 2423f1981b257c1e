from botsync.cli.app import app

app()
