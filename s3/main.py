import typer

from s3.restore import restore
from s3.versioning import check_versioning

app = typer.Typer()

# Add commands here
app.command()(restore)
app.command()(check_versioning)

if __name__ == "__main__":
    app()
