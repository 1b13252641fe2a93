"""
In-page JavaScript used by the crawler.

Each constant is a function expression passed to ``page.evaluate``; the
optional argument is supplied by the caller.
"""

# ============================================================================
# Link extraction
# ============================================================================

ANCHOR_HREFS = """
(selector) => Array.from(document.querySelectorAll(selector))
    .map(a => a.href || a.getAttribute('href'))
    .filter(Boolean)
"""

CONTAINER_HREFS = """
(selectors) => {
    const hrefs = [];
    for (const container of document.querySelectorAll(selectors.join(', '))) {
        const link = container.querySelector('a[href]');
        if (link) {
            hrefs.push(link.href || link.getAttribute('href'));
        }
    }
    return hrefs;
}
"""

ALL_HREFS = """
() => Array.from(document.querySelectorAll('a[href]'))
    .map(a => a.href || a.getAttribute('href'))
    .filter(Boolean)
"""

PAGE_STATS = """
(prefix) => {
    const anchors = Array.from(document.querySelectorAll('a[href]'));
    const matching = anchors.filter(a => (a.getAttribute('href') || '').includes(prefix));
    return {
        total: anchors.length,
        matching: matching.length,
        sample: matching.slice(0, 5).map(a => a.href),
    };
}
"""

BODY_TEXT = """
() => document.body ? document.body.innerText : ''
"""

# ============================================================================
# Mutation accumulator
# ============================================================================

INSTALL_OBSERVER = """
(prefix) => {
    if (window.__discoverObserver) {
        window.__discoverObserver.disconnect();
    }
    window.__discoverObserved = new Set();
    const collect = (node) => {
        if (node.nodeType !== Node.ELEMENT_NODE) return;
        const anchors = node.matches('a[href]') ? [node] : [];
        anchors.push(...node.querySelectorAll('a[href]'));
        for (const a of anchors) {
            const href = a.href || a.getAttribute('href');
            if (href && href.includes(prefix)) {
                window.__discoverObserved.add(href);
            }
        }
    };
    window.__discoverObserver = new MutationObserver((mutations) => {
        for (const mutation of mutations) {
            mutation.addedNodes.forEach(collect);
        }
    });
    window.__discoverObserver.observe(document.body, {childList: true, subtree: true});
    return true;
}
"""

DRAIN_OBSERVED = """
() => {
    const observed = window.__discoverObserved;
    if (!observed) return [];
    const hrefs = Array.from(observed);
    observed.clear();
    return hrefs;
}
"""

DISCONNECT_OBSERVER = """
() => {
    if (window.__discoverObserver) {
        window.__discoverObserver.disconnect();
    }
    delete window.__discoverObserver;
    delete window.__discoverObserved;
    return true;
}
"""

# ============================================================================
# Interaction
# ============================================================================

SCROLL_TO_BOTTOM = """
() => {
    window.scrollTo({top: document.body.scrollHeight, behavior: 'smooth'});
    window.dispatchEvent(new Event('scroll'));
}
"""

# ============================================================================
# Detail pages
# ============================================================================

DETAIL_SNAPSHOT = """
() => {
    const heading = document.querySelector('h1');
    return {
        heading: heading ? heading.textContent.trim() : '',
        title: document.title || '',
        json_ld: Array.from(document.querySelectorAll('script[type="application/ld+json"]'))
            .map(s => s.textContent || ''),
        hrefs: Array.from(document.querySelectorAll('a[href]'))
            .map(a => a.href || a.getAttribute('href'))
            .filter(Boolean),
    };
}
"""
