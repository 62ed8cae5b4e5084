from straightshot.main import run

run()
