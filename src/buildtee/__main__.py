from buildtee.cli.main import app

app(prog_name="buildtee")
