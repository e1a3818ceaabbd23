from store_report.cli import app

app()
