from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.errors import unhandled_exception_handler
from src.api.routes.embeddings import router as embeddings_router
from src.api.routes.queue import router as queue_router

app = FastAPI(
    title="Workspace Knowledge Index API",
    description="Transcript indexing and semantic search for sales-call workspaces",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_origin_regex=r"https://.*\.vercel\.app|http://localhost:\d+",
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(Exception, unhandled_exception_handler)

app.include_router(embeddings_router)
app.include_router(queue_router)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}
