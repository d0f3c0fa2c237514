import uvicorn

from schoolerp import create_app

app = create_app()


if __name__ == "__main__":
    uvicorn.run("schoolerp.run:app", host="0.0.0.0", port=8000, reload=True)
