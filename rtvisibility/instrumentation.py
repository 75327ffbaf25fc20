"""
In-page scripts.

WIDEN_BUFFER_JS runs before any page script (add_init_script). It raises the
ResourceTiming buffer so nothing is dropped, and records the size the page
itself asks for so the report can show the buffer the page would have had.

GATHER_JS walks every same-origin frame and returns a dict that
PageTimingSnapshot validates.
"""

WIDEN_BUFFER_JS = """
(() => {
    const perf = window.performance;
    if (!perf || typeof perf.setResourceTimingBufferSize !== "function") {
        return;
    }
    perf.setResourceTimingBufferSize(%(widened)d);

    const origSetSize = perf.setResourceTimingBufferSize;
    perf.setResourceTimingBufferSize = function(limit) {
        window.__rtvPageBufferSize = limit;
        return origSetSize.call(perf, limit);
    };

    const origClear = perf.clearResourceTimings;
    perf.clearResourceTimings = function() {
        window.__rtvClearCalled = true;
        return origClear.call(perf);
    };
})();
"""

GATHER_JS = """
(defaultBufferSize) => {
    function isAccessible(frame) {
        try {
            const href = frame.location && frame.location.href;
            const doc = frame.document;
            return !!(("performance" in frame) && frame.performance);
        } catch (e) {
            return false;
        }
    }

    function crawlFrame(frame, depth) {
        let entries = [];
        try {
            if (!isAccessible(frame)) {
                return [];
            }
            for (let i = 0; frame.frames && i < frame.frames.length; i++) {
                entries = entries.concat(crawlFrame(frame.frames[i], depth + 1));
            }
            if (typeof frame.performance.getEntriesByType !== "function") {
                return entries;
            }
            for (const res of frame.performance.getEntriesByType("resource")) {
                entries.push({
                    name: res.name,
                    initiatorType: res.initiatorType,
                    transferSize: res.transferSize,
                    decodedBodySize: res.decodedBodySize,
                    noTao: res.responseStart === 0,
                    responseStart: res.responseStart,
                    frameDepth: depth
                });
            }
        } catch (e) {
            // cross-origin frame swapped in mid-walk
        }
        return entries;
    }

    const mainEntries = window.performance.getEntriesByType("resource").length;
    return {
        resources: crawlFrame(window, 0),
        bufferSize: window.__rtvPageBufferSize || defaultBufferSize,
        exceededDefaultBuffer: mainEntries >= defaultBufferSize,
        mainFrameEntries: mainEntries
    };
}
"""


def widen_buffer_script(widened_size: int) -> str:
    return WIDEN_BUFFER_JS % {"widened": widened_size}
