"""
Publish pipeline graph — one publish attempt, strictly sequential.

Flow:
  START → select_article → summarize_source → expand_article
        → (publish)  publish_post → build_result → END
        → (preview)  build_result → END

Collaborators are passed per run through ``config["configurable"]["services"]``
so the compiled graph itself holds no clients. Node exceptions propagate out of
``PublishPipeline.run`` unchanged; the coordinator records them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal

from langchain_core.runnables import RunnableConfig
from langgraph.graph import END, START, StateGraph

from autopublisher.core.config import Settings, get_settings
from autopublisher.core.logging import get_logger
from autopublisher.pipeline.selector import select_article, summarize_source
from autopublisher.pipeline.state import PublishPipelineState

if TYPE_CHECKING:
    from autopublisher.services.firecrawl_service import FirecrawlService
    from autopublisher.services.groq_service import GroqService
    from autopublisher.services.wordpress_service import WordPressService

logger = get_logger(__name__)


@dataclass
class PipelineServices:
    scraper: FirecrawlService
    llm: GroqService
    cms: WordPressService
    harvest_limit: int = 16
    shortlist_size: int = 4

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> PipelineServices:
        """Build every collaborator; raises ConfigError on the first missing credential."""
        from autopublisher.services.firecrawl_service import FirecrawlService
        from autopublisher.services.groq_service import GroqService
        from autopublisher.services.wordpress_service import WordPressService

        settings = settings or get_settings()
        return cls(
            scraper=FirecrawlService(settings),
            llm=GroqService(settings),
            cms=WordPressService(settings),
            harvest_limit=settings.harvest_limit,
            shortlist_size=settings.shortlist_size,
        )


def _services(config: RunnableConfig) -> PipelineServices:
    return config["configurable"]["services"]


# ── Nodes ───────────────────────────────────────────────────
async def select_article_node(state: PublishPipelineState, config: RunnableConfig) -> dict:
    services = _services(config)
    selected = await select_article(
        services.scraper,
        url=state.get("url"),
        index=state.get("index"),
        harvest_limit=services.harvest_limit,
        shortlist_size=services.shortlist_size,
    )
    return {"selected": selected}


async def summarize_source_node(state: PublishPipelineState, config: RunnableConfig) -> dict:
    summary_text, source_title = await summarize_source(_services(config).scraper, state["selected"]["url"])
    return {"summary_text": summary_text, "source_title": source_title}


async def expand_article_node(state: PublishPipelineState, config: RunnableConfig) -> dict:
    article = await _services(config).llm.expand_to_blog(
        source_title=state["source_title"],
        source_url=state["selected"]["url"],
        summary_text=state["summary_text"],
    )
    return {"article": article}


async def publish_post_node(state: PublishPipelineState, config: RunnableConfig) -> dict:
    article = state["article"]
    post = await _services(config).cms.create_post(
        title=article["title"], html=article["html"], excerpt=article["hook"], status="publish"
    )
    logger.info("post_published", post_id=post.get("id"), link=post.get("link"))
    return {"post": post}


def build_result_node(state: PublishPipelineState) -> dict:
    post = state.get("post")
    article = state["article"]
    return {
        "result": {
            "published": state["publish"],
            "source_url": state["selected"]["url"],
            "source_title": state["source_title"],
            "generated_title": article["title"],
            "generated_hook": article["hook"],
            "wordpress_post": (
                {"id": post.get("id"), "link": post.get("link"), "status": post.get("status")}
                if state["publish"] and post
                else None
            ),
        }
    }


def _route_after_expand(state: PublishPipelineState) -> Literal["publish_post", "build_result"]:
    """Preview runs never reach the CMS."""
    if state["publish"]:
        return "publish_post"
    return "build_result"


def build_publish_graph():
    """Construct and compile the publish pipeline graph (no checkpointer)."""
    workflow = StateGraph(PublishPipelineState)

    workflow.add_node("select_article", select_article_node)
    workflow.add_node("summarize_source", summarize_source_node)
    workflow.add_node("expand_article", expand_article_node)
    workflow.add_node("publish_post", publish_post_node)
    workflow.add_node("build_result", build_result_node)

    workflow.add_edge(START, "select_article")
    workflow.add_edge("select_article", "summarize_source")
    workflow.add_edge("summarize_source", "expand_article")
    workflow.add_conditional_edges("expand_article", _route_after_expand)
    workflow.add_edge("publish_post", "build_result")
    workflow.add_edge("build_result", END)

    graph = workflow.compile()
    logger.debug("publish_graph_compiled", node_count=len(workflow.nodes))
    return graph


class PublishPipeline:
    """Runs the compiled graph with a fixed set of collaborators."""

    def __init__(self, services: PipelineServices, graph: Any = None) -> None:
        self.services = services
        self.graph = graph or build_publish_graph()

    async def run(
        self, *, url: str | None = None, index: int | None = None, publish: bool = True
    ) -> dict[str, Any]:
        initial_state: PublishPipelineState = {"url": url, "index": index, "publish": publish}
        final_state = await self.graph.ainvoke(
            initial_state, {"configurable": {"services": self.services}}
        )
        return final_state["result"]
