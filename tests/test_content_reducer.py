from app.services.parsers.content_reducer import reduce_html_to_text

PAGE = """
<html><head><style>.x { color: red }</style><script>var tracking = 1;</script></head>
<body>
  <nav>首页 | 分类</nav>
  <div class="sidebar">热门推荐</div>
  <article>
    <h1>番茄炒蛋</h1>
    <p>番茄 2个，鸡蛋 3个</p>
    <div class="comments">好吃！</div>
    <p>先炒鸡蛋，再炒番茄</p>
  </article>
  <footer>版权所有</footer>
</body></html>
"""


class TestContentReducer:

    def test_main_content_without_boilerplate(self):
        text = reduce_html_to_text(PAGE, 1000)

        assert text == "番茄炒蛋 番茄 2个，鸡蛋 3个 先炒鸡蛋，再炒番茄"

    def test_falls_back_to_body(self):
        text = reduce_html_to_text("<body><nav>menu</nav><div>  步骤   一 </div></body>", 1000)
        assert text == "步骤 一"

    def test_output_is_truncated(self):
        text = reduce_html_to_text("<main>" + "字" * 500 + "</main>", 100)
        assert len(text) == 100

    def test_empty_region_is_skipped(self):
        html = "<article><script>x()</script></article><div class='recipe-content'>做法</div>"
        assert reduce_html_to_text(html, 1000) == "做法"
