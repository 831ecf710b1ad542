"""
Intent classifier — a fast, local guess at what kind of change a request
asks for, used to tune how aggressively the document is compressed.

Bilingual (Chinese + English) weighted term lists; no model call.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from enum import Enum

from ..cache import BoundedCache, text_key
from ..config import Config

logger = logging.getLogger(__name__)


class EditIntent(str, Enum):
    UI_MODIFICATION = "UI_MODIFICATION"
    LOGIC_FIX = "LOGIC_FIX"
    CONFIG_HELP = "CONFIG_HELP"
    NEW_FEATURE = "NEW_FEATURE"
    QA_EXPLANATION = "QA_EXPLANATION"
    PERFORMANCE = "PERFORMANCE"
    REFACTOR = "REFACTOR"
    DATA_OPERATION = "DATA_OPERATION"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class IntentProfile:
    """Tuning for one intent.

    ``compression_threshold`` is the minimum function-body size (in lines)
    the compressor collapses: lower means more aggressive. ``top_k`` is how
    many context chunks a retrieval step should fetch.
    """
    compression_threshold: int
    top_k: int


PROFILES: dict[EditIntent, IntentProfile] = {
    EditIntent.UI_MODIFICATION: IntentProfile(20, 5),
    EditIntent.LOGIC_FIX: IntentProfile(40, 8),
    EditIntent.CONFIG_HELP: IntentProfile(15, 3),
    EditIntent.NEW_FEATURE: IntentProfile(30, 6),
    EditIntent.QA_EXPLANATION: IntentProfile(20, 4),
    EditIntent.PERFORMANCE: IntentProfile(35, 6),
    EditIntent.REFACTOR: IntentProfile(50, 8),
    EditIntent.DATA_OPERATION: IntentProfile(25, 5),
    EditIntent.UNKNOWN: IntentProfile(80, 5),
}

# (terms, weight) per intent; ASCII terms match whole words, others as substrings
INTENT_TERMS: dict[EditIntent, tuple[list[str], float]] = {
    EditIntent.UI_MODIFICATION: ([
        "颜色", "样式", "布局", "字体", "边距", "间距", "动画", "主题",
        "暗色", "亮色", "图标", "按钮", "卡片", "边框", "阴影", "圆角", "居中",
        "响应式", "移动端", "显示", "隐藏", "宽度", "高度", "背景", "渐变",
        "color", "style", "layout", "css", "font", "margin", "padding", "animation",
        "theme", "dark", "light", "icon", "button", "card", "border", "shadow",
        "rounded", "center", "responsive", "mobile", "display", "hidden", "width",
        "height", "background", "gradient", "tailwind", "className",
    ], 1.0),
    EditIntent.LOGIC_FIX: ([
        "修复", "错误", "问题", "不工作", "失败", "崩溃", "报错",
        "异常", "不对", "逻辑", "判断", "条件", "循环", "函数", "方法",
        "fix", "bug", "error", "issue", "broken", "fail", "crash", "exception",
        "wrong", "logic", "condition", "loop", "function", "method", "debug",
        "undefined", "null", "NaN", "TypeError", "ReferenceError",
    ], 1.2),
    EditIntent.CONFIG_HELP: ([
        "配置", "环境变量", "安装", "启动", "部署", "构建", "编译", "打包",
        "依赖", "版本", "设置",
        "config", "configuration", "env", "environment", "install", "start",
        "deploy", "build", "compile", "bundle", "dependency", "version",
        "npm", "yarn", "pnpm", "setup", "package.json", "tsconfig", ".env",
        "vercel", "docker", "next.config",
    ], 1.0),
    EditIntent.NEW_FEATURE: ([
        "添加", "新增", "创建", "实现", "开发", "新功能", "新页面", "新组件",
        "集成", "接入",
        "add", "new", "create", "implement", "develop", "feature", "page",
        "component", "integrate", "build", "make",
    ], 0.8),
    EditIntent.QA_EXPLANATION: ([
        "什么", "为什么", "如何", "怎么", "解释", "说明", "是什么", "作用",
        "原理", "区别", "理解",
        "what", "why", "how", "explain", "describe", "purpose", "difference",
        "understand", "mean", "work", "does",
    ], 0.6),
    EditIntent.PERFORMANCE: ([
        "性能", "优化", "慢", "卡顿", "加速", "缓存", "懒加载", "内存",
        "渲染", "重渲染",
        "performance", "optimize", "slow", "fast", "speed", "cache", "lazy",
        "memory", "render", "rerender", "memo", "useMemo", "useCallback",
    ], 1.1),
    EditIntent.REFACTOR: ([
        "重构", "优化代码", "整理", "拆分", "合并", "提取", "抽象", "封装",
        "解耦", "清理",
        "refactor", "clean", "split", "merge", "extract", "abstract", "encapsulate",
        "decouple", "organize", "restructure", "simplify",
    ], 0.9),
    EditIntent.DATA_OPERATION: ([
        "数据库", "查询", "接口", "请求", "数据", "表", "字段",
        "增删改查", "存储", "获取",
        "database", "query", "api", "endpoint", "request", "data", "table",
        "field", "crud", "storage", "fetch", "post", "get", "supabase",
        "prisma", "sql", "mutation",
    ], 1.0),
}


def _compile(term: str):
    if term.isascii():
        # Whole word, tolerating simple inflections (buttons, fixed, loading)
        return re.compile(
            rf"(?<![\w]){re.escape(term)}(?:s|es|ed|ing)?(?![\w])", re.IGNORECASE
        )
    return None


_MATCHERS: dict[EditIntent, tuple[list[tuple[str, object]], float]] = {
    intent: ([(term, _compile(term)) for term in dict.fromkeys(terms)], weight)
    for intent, (terms, weight) in INTENT_TERMS.items()
}


@dataclass(frozen=True)
class Classification:
    intent: EditIntent
    confidence: float

    @property
    def profile(self) -> IntentProfile:
        return PROFILES[self.intent]


def profile_for(intent: EditIntent) -> IntentProfile:
    return PROFILES[intent]


def _score(text: str) -> dict[EditIntent, float]:
    scores: dict[EditIntent, float] = {}
    for intent, (matchers, weight) in _MATCHERS.items():
        hits = 0
        for term, pattern in matchers:
            if pattern is None:
                hits += term in text
            elif pattern.search(text):
                hits += 1
        if hits:
            scores[intent] = weight * hits * math.log2(hits + 1)
    return scores


class IntentClassifier:
    """Keyword classifier with an injectable result cache."""

    def __init__(self, cache: BoundedCache | None = None, config: Config | None = None):
        if cache is None:
            cache = BoundedCache((config or Config()).CLASSIFIER_CACHE_SIZE, name="intent")
        self._cache = cache

    def classify(self, text: str) -> Classification:
        """
        Classify a change request.

        Parameters
        ----------
        text:
            The user's request, in Chinese or English.

        Returns
        -------
        Classification
            The top-scoring intent and ``confidence = best / total``. A tie
            for the top score, or no matching terms at all, yields
            ``UNKNOWN``.
        """
        key = text_key(text)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        scores = _score(text)
        result = Classification(EditIntent.UNKNOWN, 0.0)
        if scores:
            best = max(scores.values())
            leaders = [intent for intent, score in scores.items() if math.isclose(score, best)]
            if len(leaders) == 1:
                result = Classification(leaders[0], best / sum(scores.values()))
        logger.debug("[Intent] %s (confidence %.2f)", result.intent.value, result.confidence)

        self._cache.put(key, result)
        return result


def classify(text: str) -> Classification:
    return IntentClassifier().classify(text)
