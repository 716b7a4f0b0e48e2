from kumabridge.main import run

run()
