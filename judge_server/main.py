import logging

from fastapi import FastAPI, HTTPException

from .config import COMPILERS, DEFAULT_LANGUAGE, HOST, LOG_LEVEL, PORT
from .judge import Judge, JudgeRequestError
from .models import JudgeRequest, JudgeResponse

logger = logging.getLogger(__name__)

app = FastAPI(title="Judge")


# ===== Judge API =====

@app.post("/judge", response_model=JudgeResponse, response_model_exclude_none=True)
@app.post("/api/judge", response_model=JudgeResponse, response_model_exclude_none=True)
async def judge(req: JudgeRequest):
    """Compile the source and run it against every test case in order"""
    try:
        job = Judge(req)
    except JudgeRequestError as e:
        raise HTTPException(400, str(e))

    try:
        return await job.run()
    except Exception:
        logger.exception("[Judge %s] Internal error", job.request_id)
        raise HTTPException(500, "judge error")


# ===== Config APIs =====

@app.get("/api/languages")
async def get_languages():
    """Get available languages and compilers"""
    return {
        "default": DEFAULT_LANGUAGE,
        "languages": {lang: {"args": cfg["args"]} for lang, cfg in COMPILERS.items()},
    }


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(app, host=HOST, port=PORT, log_level=LOG_LEVEL.lower())
