"""Endpoints of the learning web service.

Paths are relative to the configured base URL; the login endpoints live on
the identity host and are absolute.
"""

USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/80.0.3987.149 Safari/537.36"
)

PREFIX = "https://learn.tsinghua.edu.cn"
LOGIN = "https://id.tsinghua.edu.cn/do/off/ui/auth/login/post/bb5df85216504820be7bba2b0ae1535b/0?/login.do"
SEMESTER_LIST = "/b/wlxt/kc/v_wlkc_xs_xktjb_coassb/queryxnxq"
HOMEWORK_SUBMIT = "/b/wlxt/kczy/zy/student/tjzy"
REPLY_DISCUSSION = "/b/wlxt/bbs/bbs_kchf/student/save"


def auth_roam(ticket: str) -> str:
    return f"/b/j_spring_security_thauth_roaming_entry?ticket={ticket}"


def course_list(semester: str) -> str:
    return f"/b/wlxt/kc/v_wlkc_xs_xkb_kcb_extend/student/loadCourseBySemesterId/{semester}"


def file_list(course: str) -> str:
    return f"/b/wlxt/kj/wlkc_kjxxb/student/kjxxbByWlkcidAndSizeForStudent?wlkcid={course}&size=200"


def file_download(file: str) -> str:
    return f"/b/wlxt/kj/wlkc_kjxxb/student/downloadFile?sfgk=0&wjid={file}"


def notification_list(course: str) -> str:
    return f"/b/wlxt/kcgg/wlkc_ggb/student/kcggListXs?wlkcid={course}&size=200"


def notification_detail(notification: str, course: str) -> str:
    return f"/f/wlxt/kcgg/wlkc_ggb/student/beforeViewXs?wlkcid={course}&id={notification}"


# Unsubmitted, submitted and graded homework are listed by separate endpoints.
def homework_lists(course: str) -> list[str]:
    return [
        f"/b/wlxt/kczy/zy/student/index/zyListWj?wlkcid={course}&size=200",
        f"/b/wlxt/kczy/zy/student/index/zyListYjwg?wlkcid={course}&size=200",
        f"/b/wlxt/kczy/zy/student/index/zyListYpg?wlkcid={course}&size=200",
    ]


def homework_detail(course: str, homework: str, student_homework: str) -> str:
    return f"/f/wlxt/kczy/zy/student/viewCj?wlkcid={course}&zyid={homework}&xszyid={student_homework}"


def discussion_list(course: str) -> str:
    return f"/b/wlxt/bbs/bbs_tltb/student/kctlList?wlkcid={course}&size=200"


def discussion_replies(course: str, discussion: str, board: str) -> str:
    return f"/f/wlxt/bbs/bbs_tltb/student/viewTlById?wlkcid={course}&id={discussion}&tabbh=2&bqid={board}"


def delete_discussion_reply(course: str, reply: str) -> str:
    return f"/b/wlxt/bbs/bbs_kchf/student/delete?wlkcid={course}&id={reply}"
