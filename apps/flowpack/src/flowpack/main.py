from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from .errors import ConfigurationError, ResolutionError
from .models import HealthResponse, PackageRequest, SolutionSummary
from .solutions import get_solution, list_solutions
from .workflow.pipeline import build_solution

load_dotenv()

app = FastAPI(
    title="FlowPack API",
    description="Builds importable Power Automate solution packages from example flows",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/api/health", response_model=HealthResponse)
def health():
    return HealthResponse(status="ok")


@app.get("/api/solutions", response_model=list[SolutionSummary])
def list_solutions_endpoint():
    summaries = []
    for name in list_solutions():
        solution = get_solution(name)
        summaries.append(
            SolutionSummary(
                name=name,
                summary=solution.summary,
                required_inputs=list(solution.required_inputs),
                optional_inputs=list(solution.optional_inputs),
            )
        )
    return summaries


@app.post("/api/solutions/{name}/package")
def package_solution(name: str, request: PackageRequest):
    """Build the solution zip in memory and return it as a download."""
    try:
        info, archive = build_solution(
            name,
            request.inputs,
            solution_name=request.solution_name,
            version=request.solution_version,
            managed=request.managed,
        )
    except ResolutionError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConfigurationError as e:
        raise HTTPException(status_code=422, detail={"message": str(e), "missing": e.missing})

    return Response(
        content=archive,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{info.unique_name}.zip"'},
    )
