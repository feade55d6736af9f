from powersite import create_app

app = create_app()
