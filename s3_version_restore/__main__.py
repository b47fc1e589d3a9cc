from s3_version_restore import app

app(prog_name="s3-version-restore")
