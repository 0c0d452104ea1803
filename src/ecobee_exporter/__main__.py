from ecobee_exporter.cli import app

app(prog_name="ecobee-exporter")
