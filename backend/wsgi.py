from marketbook import create_app

app = create_app()
