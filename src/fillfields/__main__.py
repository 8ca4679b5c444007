from fillfields.cli import app

app()
