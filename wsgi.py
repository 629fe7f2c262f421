from noveldraft import create_app

app = create_app()
